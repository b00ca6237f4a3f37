import os
import sys
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import Database, ExerciseRepository, TemplateRepository
from errors import NotFoundError, ValidationError


@pytest.fixture
def database(tmp_path):
    return Database(str(tmp_path / "exercises.db"))


@pytest.mark.asyncio
async def test_add_and_fetch_for_day_in_insertion_order(database):
    tid = await TemplateRepository(database).create("Plan", 1)
    repo = ExerciseRepository(database)
    first = await repo.add(tid, 1, 2, " Squat ", sets="3", reps="5", weight="100")
    second = await repo.add(tid, 1, 2, "Lunge", notes="each leg")
    await repo.add(tid, 1, 3, "Other day")

    rows = await repo.fetch_for_day(tid, 1, 2)
    assert [r["id"] for r in rows] == [first, second]
    assert rows[0]["name"] == "Squat"
    assert (rows[0]["sets"], rows[0]["reps"], rows[0]["weight"]) == (3, 5, 100.0)
    assert rows[0]["set_rows"] == []
    assert rows[0]["volume"] == 1500.0
    assert rows[1]["notes"] == "each leg"
    assert rows[1]["volume"] == 0.0


@pytest.mark.asyncio
async def test_set_rows_replace_and_supersede_legacy_scalars(database):
    tid = await TemplateRepository(database).create("Plan", 1)
    repo = ExerciseRepository(database)
    ex_id = await repo.add(tid, 1, 1, "Bench", sets=3, reps=5, weight=100)

    await repo.update_with_sets(
        ex_id,
        "Bench Press",
        "touch and go",
        [{"reps": 5, "weight": 100}, {"reps": "5", "weight": "100"}, {"reps": 3, "weight": ""}],
    )
    detail = await repo.fetch_detail(ex_id)
    assert detail["name"] == "Bench Press"
    assert detail["notes"] == "touch and go"
    assert detail["set_rows"] == [
        {"set_number": 1, "reps": 5, "weight": 100.0},
        {"set_number": 2, "reps": 5, "weight": 100.0},
        {"set_number": 3, "reps": 3, "weight": None},
    ]
    assert detail["volume"] == 1000.0

    await repo.update_with_sets(ex_id, "Bench Press", None, [(8, 60)])
    assert await repo.fetch_sets(ex_id) == [{"set_number": 1, "reps": 8, "weight": 60.0}]


@pytest.mark.asyncio
async def test_malformed_set_row_changes_nothing(database):
    tid = await TemplateRepository(database).create("Plan", 1)
    repo = ExerciseRepository(database)
    ex_id = await repo.add(tid, 1, 1, "Bench")
    await repo.update_with_sets(ex_id, "Bench", None, [(5, 100)])

    with pytest.raises(ValidationError):
        await repo.update_with_sets(ex_id, "Renamed", None, [(5, 100), ("five", 100)])
    detail = await repo.fetch_detail(ex_id)
    assert detail["name"] == "Bench"
    assert len(detail["set_rows"]) == 1


@pytest.mark.asyncio
async def test_update_with_sets_on_missing_exercise(database):
    await TemplateRepository(database).create("Plan", 1)
    with pytest.raises(NotFoundError):
        await ExerciseRepository(database).update_with_sets(42, "Ghost", None, [(1, 1)])


@pytest.mark.asyncio
async def test_update_scalars(database):
    tid = await TemplateRepository(database).create("Plan", 1)
    repo = ExerciseRepository(database)
    ex_id = await repo.add(tid, 1, 1, "Row")
    assert await repo.update(ex_id, "Row", 4, 10, 50.5, "slow") == 1
    detail = await repo.fetch_detail(ex_id)
    assert (detail["sets"], detail["reps"], detail["weight"]) == (4, 10, 50.5)
    assert detail["volume"] == 2020.0
    assert await repo.update(999, "Row") == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": ""},
        {"name": "Squat", "day": 8},
        {"name": "Squat", "week": 0},
        {"name": "Squat", "reps": "lots"},
        {"name": "Squat", "sets": -1},
    ],
)
async def test_add_validation(database, kwargs):
    tid = await TemplateRepository(database).create("Plan", 1)
    args = {"template_id": tid, "week": 1, "day": 1}
    args.update(kwargs)
    with pytest.raises(ValidationError):
        await ExerciseRepository(database).add(**args)


@pytest.mark.asyncio
async def test_delete_removes_sets_and_delete_many(database):
    tid = await TemplateRepository(database).create("Plan", 1)
    repo = ExerciseRepository(database)
    a = await repo.add(tid, 1, 1, "A")
    b = await repo.add(tid, 1, 1, "B")
    c = await repo.add(tid, 1, 1, "C")
    await repo.update_with_sets(a, "A", None, [(1, 1)])

    await repo.delete(a)
    assert await repo.fetch_sets(a) == []
    assert await repo.delete_many([b, c, c, 777]) == 2
    assert await repo.fetch_for_day(tid, 1, 1) == []
    assert await repo.delete_many([]) == 0
