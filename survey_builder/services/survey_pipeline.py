"""
Upload-to-survey pipeline.

The completion returned by the extraction service is treated as untrusted
text: fences are stripped, the JSON is parsed and validated, and anything
that goes wrong on the way is replaced by a fixed two-question survey. Only
persistence errors reach the caller.
"""
import json
import logging
import re

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ..crud import crud_survey
from ..models import Survey
from ..schemas import ExtractedSurvey
from .extraction import ExtractionClient, ExtractionError

logger = logging.getLogger(__name__)

SURVEY_PROMPT_TEMPLATE = """Analyze the text and create a survey. Return ONLY valid JSON with no markdown, explanations, or extra text.

Required JSON structure:
{{
  "title": "Survey Title",
  "description": "Brief description",
  "questions": [
    {{
      "question_text": "Question text",
      "options": [
        {{"option_letter": "A", "option_text": "Option A"}},
        {{"option_letter": "B", "option_text": "Option B"}},
        {{"option_letter": "C", "option_text": "Option C"}},
        {{"option_letter": "D", "option_text": "Option D"}}
      ]
    }}
  ]
}}

Text content to analyze:
{content}

Return only the JSON object, no markdown formatting:"""

FALLBACK_SURVEY = {
    "title": "Generated Survey",
    "description": "Survey generated from uploaded content due to processing error",
    "questions": [
        {
            "question_text": "How would you rate the content of the uploaded file?",
            "options": [
                {"option_letter": "A", "option_text": "Excellent"},
                {"option_letter": "B", "option_text": "Good"},
                {"option_letter": "C", "option_text": "Fair"},
                {"option_letter": "D", "option_text": "Poor"},
            ],
        },
        {
            "question_text": "What type of content was most interesting to you?",
            "options": [
                {"option_letter": "A", "option_text": "Technical information"},
                {"option_letter": "B", "option_text": "General concepts"},
                {"option_letter": "C", "option_text": "Examples and cases"},
                {"option_letter": "D", "option_text": "Overall structure"},
            ],
        },
    ],
}

_LEADING_FENCE = re.compile(r"\A```[A-Za-z0-9_+-]*[^\S\n]*\n?")
_TRAILING_FENCE = re.compile(r"\n?[^\S\n]*```\Z")
RAW_EXCERPT_LENGTH = 500


class SurveyParseError(ValueError):
    pass


class InvalidSurveyInput(ValueError):
    pass


def build_prompt(file_text: str) -> str:
    return SURVEY_PROMPT_TEMPLATE.format(content=file_text)


def strip_code_fences(text: str) -> str:
    """Drop one opening fence line (any language tag) and one closing fence."""
    stripped = text.strip()
    stripped = _LEADING_FENCE.sub("", stripped, count=1)
    stripped = _TRAILING_FENCE.sub("", stripped, count=1)
    return stripped.strip()


def parse_survey_json(raw: str) -> ExtractedSurvey:
    try:
        data = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError as e:
        raise SurveyParseError(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise SurveyParseError("Response JSON is not an object")
    if not isinstance(data.get("title"), str) or not data["title"].strip():
        raise SurveyParseError("Response has no title")
    if not isinstance(data.get("questions"), list):
        raise SurveyParseError("Response questions is not an array")

    try:
        return ExtractedSurvey.model_validate(data)
    except ValidationError as e:
        raise SurveyParseError(f"Invalid survey structure: {e.error_count()} errors") from e


def fallback_survey() -> ExtractedSurvey:
    return ExtractedSurvey.model_validate(FALLBACK_SURVEY)


async def extract_survey(extractor: ExtractionClient, file_text: str) -> ExtractedSurvey:
    """Never raises for upstream problems; returns the fallback instead."""
    if not file_text.strip():
        logger.warning("Uploaded file is empty, using fallback survey")
        return fallback_survey()

    raw = ""
    try:
        raw = await extractor.complete(build_prompt(file_text))
        survey = parse_survey_json(raw)
        if not survey.questions:
            raise SurveyParseError("Response contains no questions")
        return survey
    except (ExtractionError, SurveyParseError) as e:
        logger.warning("Survey extraction failed, using fallback: %s", e)
        if raw:
            logger.warning("Raw content received: %s", raw[:RAW_EXCERPT_LENGTH])
        return fallback_survey()


async def create_survey_from_upload(
    db: AsyncSession,
    extractor: ExtractionClient,
    *,
    survey_name: str,
    file_text: str,
    creator_id: int,
) -> Survey:
    """
    The slide name becomes the survey title; description and questions come
    from the extraction (or the fallback).
    """
    title = (survey_name or "").strip()
    if not title:
        raise InvalidSurveyInput("Survey name is required")

    extracted = await extract_survey(extractor, file_text)
    return await crud_survey.create_survey(
        db,
        title=title,
        description=extracted.description or "Generated survey",
        creator_id=creator_id,
        questions=extracted.questions,
    )
