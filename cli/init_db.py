#!/usr/bin/env python3
"""
CLI: create the store schema and optionally seed a demo seller.

Usage:
    # Create all tables
    python -m cli.init_db

    # Drop and recreate
    python -m cli.init_db --drop

    # Seed a demo store + a few transactions for a seller id
    python -m cli.init_db --seed 6f1c0c2e-0000-4000-8000-000000000001
"""
from __future__ import annotations

import argparse
import asyncio
import os
import sys
from datetime import date, datetime, timedelta, timezone

# Allow running from project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from store_api.config import get_settings
from store_api.database import engine, get_db_ctx
from store_api.models import Base, Product, SellerExpense, Store, Transaction


async def cmd_create(drop: bool) -> None:
    async with engine.begin() as conn:
        if drop:
            print("→ Dropping all tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    print(f"Schema ready on {get_settings().database_url.split('@')[-1]}")


async def cmd_seed(seller_id: str) -> None:
    async with get_db_ctx() as session:
        existing = (
            await session.execute(select(Store).where(Store.seller_id == seller_id))
        ).scalar_one_or_none()
        if existing:
            print(f"ERROR: seller {seller_id!r} already has store {existing.slug!r}", file=sys.stderr)
            sys.exit(1)

        store = Store(seller_id=seller_id, name="Demo Store", slug=f"demo-{seller_id[:8]}")
        session.add(store)
        await session.flush()

        session.add(Product(store_id=store.id, name="Demo Product", price=25, status="ACTIVE"))
        now = datetime.now(timezone.utc)
        for i in range(5):
            session.add(Transaction(
                seller_id=seller_id,
                item_name="Demo Product",
                amount=25,
                seller_payout=22.5,
                platform_fee=2.5,
                status="completed",
                created_at=now - timedelta(days=i * 3),
            ))
        session.add(SellerExpense(
            seller_id=seller_id,
            amount=12,
            category="shipping",
            description="Courier",
            expense_date=date.today(),
        ))

    print(f"Seeded store {store.slug!r} for seller {seller_id}")


async def run(args: argparse.Namespace) -> None:
    try:
        await cmd_create(args.drop)
        if args.seed:
            await cmd_seed(args.seed)
    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seller Store API database CLI")
    parser.add_argument("--drop", action="store_true", help="Drop tables before creating")
    parser.add_argument("--seed", metavar="SELLER_ID", help="Seed demo data for a seller")
    asyncio.run(run(parser.parse_args()))


if __name__ == "__main__":
    main()
