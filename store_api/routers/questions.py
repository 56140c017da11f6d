"""
Product Q&A answered by the seller.

GET  /reviews/questions                 unanswered questions on the caller's products
POST /questions/{question_id}/answer    official answer; a question is answered once
"""
from __future__ import annotations

import logging
from collections import defaultdict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import select

from store_api.deps import AuthContext, get_auth_context
from store_api.errors import Forbidden, NotFound, ValidationError, ok
from store_api.models import Product, ReviewAnswer, ReviewQuestion, Store
from store_api.schemas import AnswerCreate, AnswerRow, QuestionRow, dump

logger = logging.getLogger(__name__)

router = APIRouter(tags=["questions"])

MIN_ANSWER_LENGTH = 5
MAX_ANSWER_LENGTH = 2000


@router.get("/reviews/questions")
async def unanswered_questions(ctx: AuthContext = Depends(get_auth_context)) -> JSONResponse:
    store = await ctx.store()
    if store is None:
        return ok([])

    products = {
        p.id: {"id": p.id, "name": p.name}
        for p in (
            await ctx.db.execute(select(Product).where(Product.store_id == store.id))
        ).scalars().all()
    }
    if not products:
        return ok([])

    questions = (
        await ctx.db.execute(
            select(ReviewQuestion)
            .where(
                ReviewQuestion.product_id.in_(list(products)),
                ReviewQuestion.is_answered.is_(False),
            )
            .order_by(ReviewQuestion.created_at.desc())
        )
    ).scalars().all()

    answers_by_question: dict[str, list] = defaultdict(list)
    if questions:
        answers = (
            await ctx.db.execute(
                select(ReviewAnswer)
                .where(ReviewAnswer.question_id.in_([q.id for q in questions]))
                .order_by(ReviewAnswer.created_at)
            )
        ).scalars().all()
        for a in answers:
            answers_by_question[a.question_id].append(dump(AnswerRow, a))

    data = []
    for q in questions:
        item = dump(QuestionRow, q)
        item["products"] = products.get(q.product_id)
        item["answers"] = answers_by_question.get(q.id, [])
        data.append(item)
    return ok(data)


@router.post("/questions/{question_id}/answer")
async def answer_question(
    question_id: str,
    payload: AnswerCreate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    if not payload.answer or len(payload.answer) < MIN_ANSWER_LENGTH:
        raise ValidationError(f"Answer min {MIN_ANSWER_LENGTH} chars")

    question = await ctx.db.get(ReviewQuestion, question_id)
    if question is None:
        raise NotFound("Question not found")

    # question -> product -> store -> seller must be the caller
    seller_id = (
        await ctx.db.execute(
            select(Store.seller_id)
            .join(Product, Product.store_id == Store.id)
            .where(Product.id == question.product_id)
        )
    ).scalar_one_or_none()
    if seller_id != ctx.user_id:
        logger.warning(
            "Answer denied: question=%s caller=%s owner=%s",
            question_id, ctx.user_id, seller_id,
        )
        raise Forbidden()

    if question.is_answered:
        raise ValidationError("Question already answered")

    answer = ReviewAnswer(
        question_id=question.id,
        answerer_id=ctx.user_id,
        answerer_type="seller",
        answer=payload.answer[:MAX_ANSWER_LENGTH],
        is_official=True,
    )
    ctx.db.add(answer)
    await ctx.db.commit()

    question.is_answered = True
    await ctx.db.commit()
    return ok(dump(AnswerRow, answer))
