from survey_builder.crud import crud_survey
from survey_builder.schemas import ExtractedSurvey

from conftest import SAMPLE_SURVEY, login, make_user

ACCESS_DENIED = {"detail": "Survey not found or access denied"}


async def _create(session, creator, title):
    return await crud_survey.create_survey(
        session,
        title=title,
        description="",
        creator_id=creator.id,
        questions=ExtractedSurvey.model_validate(SAMPLE_SURVEY).questions,
    )


async def test_user_surveys_lists_own_active_surveys(client, database, session, user):
    other = await make_user(database, email="bob@example.com", google_id="google-bob", name="Bob")
    older = await _create(session, user, "Older")
    newer = await _create(session, user, "Newer")
    retired = await _create(session, user, "Retired")
    await _create(session, other, "Bob's")
    await crud_survey.deactivate_survey(session, retired.id, user.id)

    login(client, user)
    response = await client.get("/api/user-surveys")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["count"] == 2
    assert [s["id"] for s in body["surveys"]] == [newer.id, older.id]
    assert "questions" not in body["surveys"][0]


async def test_user_surveys_for_unknown_user_is_empty(client, user):
    login(client, user, userId=user.id + 100)
    body = (await client.get("/api/user-surveys")).json()
    assert body["surveys"] == []
    assert body["count"] == 0


async def test_user_surveys_requires_login(client):
    assert (await client.get("/api/user-surveys")).status_code == 401


async def test_dashboard_for_own_hashkey(client, session, user):
    survey = await _create(session, user, "Mine")
    login(client, user)

    response = await client.get(f"/api/dashboard/{user.hashkey}")

    assert response.status_code == 200
    body = response.json()
    assert body["hashkey"] == user.hashkey
    assert [s["id"] for s in body["surveys"]] == [survey.id]


async def test_dashboard_with_legacy_token(client, session, user):
    await _create(session, user, "Mine")
    login(client, user, hashkey=None)
    response = await client.get(f"/api/dashboard/{user.hashkey}")
    assert response.status_code == 200
    assert response.json()["count"] == 1


async def test_foreign_and_missing_dashboards_look_the_same(client, database, session, user):
    other = await make_user(database, email="bob@example.com", google_id="google-bob", name="Bob")
    await _create(session, other, "Bob's")
    login(client, user)

    foreign = await client.get(f"/api/dashboard/{other.hashkey}")
    missing = await client.get("/api/dashboard/00000000")

    assert foreign.status_code == missing.status_code == 404
    assert foreign.json() == missing.json() == ACCESS_DENIED


async def test_dashboard_requires_login(client, user):
    response = await client.get(f"/api/dashboard/{user.hashkey}")
    assert response.status_code == 401


async def test_rename_own_survey(client, session, user):
    survey = await _create(session, user, "Draft")
    login(client, user)

    response = await client.patch(
        f"/api/user-surveys/{survey.id}", json={"title": "  Final  ", "description": "v2"}
    )

    assert response.status_code == 200
    assert response.json()["title"] == "Final"
    assert response.json()["description"] == "v2"
    assert response.json()["hashkey"] == survey.hashkey


async def test_rename_rejects_blank_title(client, session, user):
    survey = await _create(session, user, "Draft")
    login(client, user)
    response = await client.patch(f"/api/user-surveys/{survey.id}", json={"title": "  "})
    assert response.status_code == 422


async def test_cannot_touch_someone_elses_survey(client, database, session, user):
    other = await make_user(database, email="bob@example.com", google_id="google-bob", name="Bob")
    survey = await _create(session, other, "Bob's")
    login(client, user)

    patched = await client.patch(f"/api/user-surveys/{survey.id}", json={"title": "Mine now"})
    deleted = await client.delete(f"/api/user-surveys/{survey.id}")

    assert patched.status_code == deleted.status_code == 404
    assert patched.json() == deleted.json() == ACCESS_DENIED
    assert (await client.get(f"/api/surveys/{survey.hashkey}")).json()["title"] == "Bob's"


async def test_deactivate_own_survey(client, session, user):
    survey = await _create(session, user, "Done")
    login(client, user)

    response = await client.delete(f"/api/user-surveys/{survey.id}")

    assert response.status_code == 200
    assert response.json() == {"success": True, "surveyId": survey.id}
    assert (await client.get(f"/api/surveys/{survey.hashkey}")).status_code == 404
    assert (await client.get("/api/user-surveys")).json()["count"] == 0
