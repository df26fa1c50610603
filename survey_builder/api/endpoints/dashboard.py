import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.security import get_current_claims, get_current_user, resolve_hashkey, resolve_user
from ...crud import crud_survey
from ...database import get_db_session
from ...models import User
from ...schemas import (
    DashboardResponse,
    DeactivateSurveyResponse,
    SurveyOut,
    SurveyUpdate,
    UserSurveysResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])

# Same answer whether the hashkey is unknown or belongs to someone else
ACCESS_DENIED = "Survey not found or access denied"


@router.get("/user-surveys", response_model=UserSurveysResponse)
async def list_user_surveys(
    claims: dict = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db_session),
):
    try:
        user = await resolve_user(db, claims)
        surveys = await crud_survey.get_surveys_by_creator(db, user.id) if user else []
    except Exception:
        logger.exception("Error fetching user surveys")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error"
        )

    items = [SurveyOut.model_validate(s) for s in surveys]
    return UserSurveysResponse(surveys=items, count=len(items))


@router.get("/dashboard/{hashkey}", response_model=DashboardResponse)
async def personal_dashboard(
    hashkey: str,
    claims: dict = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db_session),
):
    own_hashkey = await resolve_hashkey(db, claims)
    if own_hashkey is None or own_hashkey != hashkey:
        raise HTTPException(status_code=404, detail=ACCESS_DENIED)

    user = await resolve_user(db, claims)
    if user is None:
        raise HTTPException(status_code=404, detail=ACCESS_DENIED)

    surveys = await crud_survey.get_surveys_by_creator(db, user.id)
    items = [SurveyOut.model_validate(s) for s in surveys]
    return DashboardResponse(hashkey=hashkey, surveys=items, count=len(items))


@router.patch("/user-surveys/{survey_id}", response_model=SurveyOut)
async def edit_user_survey(
    survey_id: int,
    survey_in: SurveyUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    survey = await crud_survey.update_survey(
        db,
        survey_id,
        user.id,
        title=survey_in.title,
        description=survey_in.description,
    )
    if survey is None:
        raise HTTPException(status_code=404, detail=ACCESS_DENIED)
    return SurveyOut.model_validate(survey)


@router.delete("/user-surveys/{survey_id}", response_model=DeactivateSurveyResponse)
async def deactivate_user_survey(
    survey_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    if not await crud_survey.deactivate_survey(db, survey_id, user.id):
        raise HTTPException(status_code=404, detail=ACCESS_DENIED)
    logger.info("Survey id=%s deactivated by user id=%s", survey_id, user.id)
    return DeactivateSurveyResponse(surveyId=survey_id)
