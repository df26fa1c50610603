from . import crud_survey, crud_user  # noqa: F401
