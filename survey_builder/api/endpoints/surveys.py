import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.hashkey import is_valid_hashkey
from ...core.security import get_current_claims, get_current_user
from ...crud import crud_survey
from ...database import get_db_session
from ...models import User
from ...schemas import CreateSurveyResponse, SurveyDetailOut
from ...services.extraction import ExtractionClient, get_extractor
from ...services.survey_pipeline import InvalidSurveyInput, create_survey_from_upload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["surveys"])

ALLOWED_UPLOAD_TYPES = {"text/plain"}
ALLOWED_UPLOAD_SUFFIXES = (".txt",)


def _is_text_upload(file: UploadFile) -> bool:
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    filename = (file.filename or "").lower()
    return content_type in ALLOWED_UPLOAD_TYPES or filename.endswith(ALLOWED_UPLOAD_SUFFIXES)


@router.post("/create-survey", response_model=CreateSurveyResponse)
async def create_survey(
    surveyName: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    claims: dict = Depends(get_current_claims),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    extractor: ExtractionClient = Depends(get_extractor),
):
    """
    Turns an uploaded text file into a stored survey and returns the
    hashkeys the client needs to redirect to the dashboard.
    """
    if not surveyName or not surveyName.strip() or file is None or not file.filename:
        raise HTTPException(status_code=400, detail="Survey name and file are required")

    if not _is_text_upload(file):
        raise HTTPException(status_code=400, detail="Only plain text (.txt) files are supported")

    try:
        raw = await file.read()
    finally:
        await file.close()

    try:
        file_text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="File must be UTF-8 encoded text")

    try:
        survey = await create_survey_from_upload(
            db,
            extractor,
            survey_name=surveyName,
            file_text=file_text,
            creator_id=user.id,
        )
    except InvalidSurveyInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Error creating survey for user id=%s", user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error"
        )

    # Claim first, directory record for tokens issued before hashkeys existed
    user_hashkey = claims.get("hashkey") or user.hashkey
    return CreateSurveyResponse(
        userHashkey=user_hashkey,
        surveyId=survey.id,
        surveyHashkey=survey.hashkey,
    )


@router.get("/surveys/{hashkey}", response_model=SurveyDetailOut)
async def get_public_survey(hashkey: str, db: AsyncSession = Depends(get_db_session)):
    """Public read-only view; no authentication."""
    if not is_valid_hashkey(hashkey):
        raise HTTPException(status_code=400, detail="Invalid survey ID format")

    try:
        survey = await crud_survey.get_survey_by_hashkey(db, hashkey)
    except Exception:
        logger.exception("Error fetching survey %s", hashkey)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error"
        )

    if survey is None:
        raise HTTPException(status_code=404, detail="Survey not found")
    return SurveyDetailOut.model_validate(survey)
