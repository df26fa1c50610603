import logging
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import func

from ..core.hashkey import (
    MAX_HASHKEY_ATTEMPTS,
    HashkeyExhaustedError,
    generate_unique_hashkey,
    hashkey_exists,
)
from ..models import (
    QUESTION_TYPE_MULTIPLE_CHOICE,
    AnswerOption,
    Question,
    Survey,
)
from ..schemas import ExtractedQuestion

logger = logging.getLogger(__name__)


async def create_survey(
    db: AsyncSession,
    *,
    title: str,
    description: str,
    creator_id: int,
    questions: Sequence[ExtractedQuestion],
) -> Survey:
    """
    Persists a survey with all of its questions and options in one transaction.

    Question numbers run 1..N and option values 1..M in input order. Any
    failure rolls the whole unit back. If the insert lost a hashkey race the
    unit is retried with a new hashkey.
    """
    for attempt in range(1, MAX_HASHKEY_ATTEMPTS + 1):
        hashkey = await generate_unique_hashkey(db, Survey)
        new_survey = Survey(
            hashkey=hashkey,
            title=title,
            description=description or "",
            creator_id=creator_id,
            is_active=True,
        )
        for number, question_data in enumerate(questions, start=1):
            question = Question(
                question_number=number,
                question_text=question_data.question_text,
                question_type=QUESTION_TYPE_MULTIPLE_CHOICE,
                is_required=True,
            )
            for value, option_data in enumerate(question_data.options, start=1):
                question.options.append(
                    AnswerOption(
                        option_letter=option_data.option_letter,
                        option_text=option_data.option_text,
                        option_value=value,
                    )
                )
            new_survey.questions.append(question)

        db.add(new_survey)
        try:
            await db.flush()
            await db.commit()
        except IntegrityError:
            await db.rollback()
            if await hashkey_exists(db, Survey, hashkey):
                logger.warning(
                    "Survey hashkey %s taken concurrently (attempt %d), retrying", hashkey, attempt
                )
                continue
            raise
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Survey created: id=%s hashkey=%s questions=%d creator=%s",
            new_survey.id,
            new_survey.hashkey,
            len(questions),
            creator_id,
        )
        return new_survey

    raise HashkeyExhaustedError(
        f"Could not allocate a survey hashkey after {MAX_HASHKEY_ATTEMPTS} attempts"
    )


async def get_survey(db: AsyncSession, survey_id: int) -> Optional[Survey]:
    return await db.get(Survey, survey_id)


async def get_survey_by_hashkey(db: AsyncSession, hashkey: str) -> Optional[Survey]:
    """Active survey with questions (by number) and their options (by letter)."""
    result = await db.execute(
        select(Survey)
        .options(selectinload(Survey.questions).selectinload(Question.options))
        .where(Survey.hashkey == hashkey, Survey.is_active.is_(True))
    )
    return result.scalar_one_or_none()


async def get_surveys_by_creator(db: AsyncSession, creator_id: int) -> List[Survey]:
    result = await db.execute(
        select(Survey)
        .where(Survey.creator_id == creator_id, Survey.is_active.is_(True))
        .order_by(Survey.created_at.desc(), Survey.id.desc())
    )
    return list(result.scalars().all())


async def deactivate_survey(db: AsyncSession, survey_id: int, creator_id: int) -> bool:
    """Soft delete. Matches on both id and creator, so only the owner succeeds."""
    result = await db.execute(
        update(Survey)
        .where(Survey.id == survey_id, Survey.creator_id == creator_id)
        .values(is_active=False, updated_at=func.now())
    )
    await db.commit()
    return (result.rowcount or 0) > 0


async def update_survey(
    db: AsyncSession,
    survey_id: int,
    creator_id: int,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Optional[Survey]:
    result = await db.execute(
        select(Survey).where(
            Survey.id == survey_id,
            Survey.creator_id == creator_id,
            Survey.is_active.is_(True),
        )
    )
    db_survey = result.scalar_one_or_none()
    if db_survey is None:
        return None

    if title is None and description is None:
        return db_survey

    if title is not None:
        db_survey.title = title
    if description is not None:
        db_survey.description = description
    await db.commit()
    await db.refresh(db_survey)
    return db_survey
