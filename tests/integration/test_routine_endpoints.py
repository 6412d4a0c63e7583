"""
Integration tests for /api/v1/routines/*, /routine-types, /templates and /exercises.

Covered:
- POST /routines: coach creates for a gym athlete, validation errors (422),
  athlete forbidden, member of another gym
- GET /routines/mine grouping; GET /routines for staff
- GET /routines/{id} visibility for athletes
- PATCH /routines/{id}/progress/{key}: single-key merge, unknown key, bad key
- GET /routines/{id}/playlist: circuit order
- routine types and templates CRUD
- exercise library: trial gate (402), sorted listing
"""

import pytest
from datetime import datetime, timedelta

from app.models.exercise import LibraryExercise
from app.models.routine import RoutineType, RoutineTemplate
from tests.conftest import GYM_ID, make_blocks, make_routine

pytestmark = pytest.mark.integration


def routine_payload(member_id: int, **overrides) -> dict:
    payload = {
        "member_id": member_id,
        "routine_date": datetime.utcnow().isoformat(),
        "routine_type_name": "Strength",
        "blocks": make_blocks(),
    }
    payload.update(overrides)
    return payload


# ---------------------------------------------------------------------------
# POST /routines
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_coach_creates_routine_for_athlete(coach_client, mock_repo, mock_routines, athlete_fixture, coach_fixture):
    mock_repo.get_by_id.return_value = athlete_fixture

    async def create(routine):
        routine.id = 100
        return routine

    mock_routines.create.side_effect = create

    response = await coach_client.post("/api/v1/routines", json=routine_payload(athlete_fixture.id))

    assert response.status_code == 201
    data = response.json()
    assert data["member_id"] == athlete_fixture.id
    assert data["coach_id"] == coach_fixture.id
    assert data["gym_id"] == GYM_ID
    assert data["user_name"] == athlete_fixture.name
    assert data["progress"] == {}
    assert data["blocks"][0]["exercises"][1]["duration"] == "30s"


@pytest.mark.asyncio
async def test_create_routine_missing_reps_returns_422(coach_client, mock_routines, athlete_fixture):
    blocks = [{"name": "Main", "sets": "3", "exercises": [{"name": "Squats", "rep_type": "reps"}]}]

    response = await coach_client.post("/api/v1/routines", json=routine_payload(athlete_fixture.id, blocks=blocks))

    assert response.status_code == 422
    assert "Reps are required." in response.text
    mock_routines.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_routine_without_blocks_returns_422(coach_client, athlete_fixture):
    response = await coach_client.post("/api/v1/routines", json=routine_payload(athlete_fixture.id, blocks=[]))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_athlete_cannot_create_routine(athlete_client, athlete_fixture):
    response = await athlete_client.post("/api/v1/routines", json=routine_payload(athlete_fixture.id))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_routine_for_member_of_other_gym_returns_404(coach_client, mock_repo, athlete_fixture):
    athlete_fixture.gym_id = 99
    mock_repo.get_by_id.return_value = athlete_fixture

    response = await coach_client.post("/api/v1/routines", json=routine_payload(athlete_fixture.id))

    assert response.status_code == 404


# ---------------------------------------------------------------------------
# Listing and reading
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_my_routines_grouped(athlete_client, mock_routines, athlete_fixture):
    today = datetime.utcnow().replace(hour=12, minute=0, second=0, microsecond=0)
    mock_routines.list_for_member.return_value = [
        make_routine(athlete_fixture, id=1, routine_date=today),
        make_routine(athlete_fixture, id=2, routine_date=today - timedelta(days=30)),
    ]

    response = await athlete_client.get("/api/v1/routines/mine")

    assert response.status_code == 200
    data = response.json()
    assert data["today"]["id"] == 1
    assert data["week"] == []
    assert [r["id"] for r in data["history"]] == [2]


@pytest.mark.asyncio
async def test_staff_lists_gym_routines_by_member(coach_client, mock_routines, athlete_fixture):
    mock_routines.list_for_gym.return_value = [make_routine(athlete_fixture)]

    response = await coach_client.get(f"/api/v1/routines?member_id={athlete_fixture.id}")

    assert response.status_code == 200
    assert len(response.json()) == 1
    mock_routines.list_for_gym.assert_awaited_once_with(GYM_ID, athlete_fixture.id)


@pytest.mark.asyncio
async def test_athlete_cannot_read_someone_elses_routine(athlete_client, mock_routines, coach_fixture):
    mock_routines.get_by_id.return_value = make_routine(coach_fixture)

    response = await athlete_client.get("/api/v1/routines/100")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_routine_replaces_blocks(coach_client, mock_routines, routine_fixture):
    mock_routines.get_by_id.return_value = routine_fixture
    mock_routines.save.side_effect = lambda routine: routine
    blocks = [{"name": "Only", "sets": "1", "exercises": [{"name": "Row", "rep_type": "reps", "reps": "8"}]}]

    response = await coach_client.put("/api/v1/routines/100", json={"blocks": blocks})

    assert response.status_code == 200
    assert response.json()["blocks"][0]["name"] == "Only"


@pytest.mark.asyncio
async def test_delete_routine(coach_client, mock_routines, routine_fixture):
    mock_routines.get_by_id.return_value = routine_fixture

    response = await coach_client.delete("/api/v1/routines/100")

    assert response.status_code == 204
    mock_routines.delete.assert_awaited_once_with(routine_fixture)


# ---------------------------------------------------------------------------
# Progress and playlist
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_progress_patch_merges_single_key(athlete_client, mock_routines, athlete_fixture):
    routine = make_routine(athlete_fixture, progress={
        "0-0-0": {"completed": True, "difficulty": "easy"},
        "0-1-0": {"completed": False, "difficulty": "hard"},
    })
    mock_routines.get_by_id.return_value = routine

    response = await athlete_client.patch("/api/v1/routines/100/progress/0-1-0", json={"completed": True})

    assert response.status_code == 200
    assert response.json() == {"completed": True, "difficulty": "hard"}
    mock_routines.merge_progress_entry.assert_awaited_once_with(
        100, "0-1-0", {"completed": True, "difficulty": "hard"}
    )


@pytest.mark.asyncio
async def test_progress_patch_unknown_step_returns_404(athlete_client, mock_routines, routine_fixture):
    mock_routines.get_by_id.return_value = routine_fixture

    response = await athlete_client.patch("/api/v1/routines/100/progress/5-0-0", json={"completed": True})

    assert response.status_code == 404
    mock_routines.merge_progress_entry.assert_not_awaited()


@pytest.mark.asyncio
async def test_progress_patch_malformed_key_returns_422(athlete_client):
    response = await athlete_client.patch("/api/v1/routines/100/progress/first", json={"completed": True})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_progress_patch_invalid_difficulty_returns_422(athlete_client):
    response = await athlete_client.patch("/api/v1/routines/100/progress/0-0-0", json={"difficulty": "brutal"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_playlist_is_in_circuit_order(athlete_client, mock_routines, routine_fixture):
    mock_routines.get_by_id.return_value = routine_fixture

    response = await athlete_client.get("/api/v1/routines/100/playlist")

    assert response.status_code == 200
    steps = response.json()
    assert [s["key"] for s in steps] == ["0-0-0", "0-1-0", "0-0-1", "0-1-1", "1-0-0"]
    assert steps[1]["name"] == "Plank"
    assert steps[1]["total_sets"] == 2


# ---------------------------------------------------------------------------
# Routine types and templates
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_and_list_routine_types(coach_client, mock_catalog):
    async def add(item):
        item.id = 1
        return item

    mock_catalog.add.side_effect = add
    mock_catalog.list_routine_types.return_value = [RoutineType(id=1, gym_id=GYM_ID, name="Hypertrophy")]

    created = await coach_client.post("/api/v1/routine-types", json={"name": "Hypertrophy"})
    listed = await coach_client.get("/api/v1/routine-types")

    assert created.status_code == 201
    assert created.json()["gym_id"] == GYM_ID
    assert listed.json()[0]["name"] == "Hypertrophy"


@pytest.mark.asyncio
async def test_delete_missing_routine_type_returns_404(coach_client, mock_catalog):
    mock_catalog.get_routine_type.return_value = None
    response = await coach_client.delete("/api/v1/routine-types/5")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_template(coach_client, mock_catalog, coach_fixture):
    async def add(item):
        item.id = 3
        return item

    mock_catalog.add.side_effect = add

    response = await coach_client.post("/api/v1/templates", json={"name": "Full body A", "blocks": make_blocks()})

    assert response.status_code == 201
    assert response.json()["coach_id"] == coach_fixture.id
    assert len(response.json()["blocks"]) == 2


@pytest.mark.asyncio
async def test_delete_template(coach_client, mock_catalog):
    template = RoutineTemplate(id=3, gym_id=GYM_ID, name="Full body A", blocks=[])
    mock_catalog.get_template.return_value = template

    response = await coach_client.delete("/api/v1/templates/3")

    assert response.status_code == 204
    mock_catalog.delete.assert_awaited_once_with(template)


# ---------------------------------------------------------------------------
# Exercise library (trial gated)
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_exercise_library_listing(admin_client, mock_gyms, mock_catalog, gym_fixture):
    mock_gyms.get_by_id.return_value = gym_fixture
    mock_catalog.list_exercises.return_value = [
        LibraryExercise(id=1, gym_id=GYM_ID, name="Deadlift"),
        LibraryExercise(id=2, gym_id=GYM_ID, name="Squat"),
    ]

    response = await admin_client.get("/api/v1/exercises")

    assert response.status_code == 200
    assert [e["name"] for e in response.json()] == ["Deadlift", "Squat"]


@pytest.mark.asyncio
async def test_exercise_library_after_trial_returns_402(admin_client, mock_gyms, mock_catalog, gym_fixture):
    gym_fixture.trial_ends_at = datetime.utcnow() - timedelta(days=1)
    mock_gyms.get_by_id.return_value = gym_fixture

    response = await admin_client.get("/api/v1/exercises")

    assert response.status_code == 402
    mock_catalog.list_exercises.assert_not_awaited()


@pytest.mark.asyncio
async def test_exercise_library_with_subscription_after_trial(admin_client, mock_gyms, gym_fixture, admin_fixture):
    gym_fixture.trial_ends_at = datetime.utcnow() - timedelta(days=1)
    admin_fixture.stripe_subscription_status = "trialing"
    mock_gyms.get_by_id.return_value = gym_fixture

    response = await admin_client.get("/api/v1/exercises")

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_create_exercise_with_empty_video_url(admin_client, mock_gyms, mock_catalog, gym_fixture):
    mock_gyms.get_by_id.return_value = gym_fixture

    async def add(item):
        item.id = 9
        return item

    mock_catalog.add.side_effect = add

    response = await admin_client.post("/api/v1/exercises", json={
        "name": "Kettlebell swing",
        "description": "Hips drive the bell",
        "video_url": "",
    })

    assert response.status_code == 201
    assert response.json()["video_url"] is None


@pytest.mark.asyncio
async def test_coach_cannot_manage_exercise_library(coach_client):
    response = await coach_client.get("/api/v1/exercises")
    assert response.status_code == 403
