import os
import sys
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import Database, DayRepository, ExerciseRepository, TemplateRepository
from errors import NotFoundError
from stats_service import StatisticsService


@pytest.fixture
def database(tmp_path):
    return Database(str(tmp_path / "stats.db"))


async def _plan(database):
    tid = await TemplateRepository(database).create("Volume plan", 2)
    exercises = ExerciseRepository(database)
    bench = await exercises.add(tid, 1, 1, "Bench")
    await exercises.update_with_sets(
        bench, "Bench", None, [(5, 100), (5, 100), (3, None)]
    )
    legacy = await exercises.add(tid, 1, 3, "Deadlift", sets=3, reps=5, weight=100)
    empty = await exercises.add(tid, 2, 1, "Stretch")
    return tid, bench, legacy, empty


@pytest.mark.asyncio
async def test_set_rows_and_legacy_volume(database):
    tid, bench, legacy, empty = await _plan(database)
    stats = StatisticsService(database)
    assert await stats.exercise_volume(bench) == 1000.0
    assert await stats.exercise_volume(legacy) == 1500.0
    assert await stats.exercise_volume(empty) == 0.0
    assert await stats.exercise_volume(999) == 0.0


@pytest.mark.asyncio
async def test_set_rows_supersede_scalars(database):
    tid = await TemplateRepository(database).create("Plan", 1)
    exercises = ExerciseRepository(database)
    ex_id = await exercises.add(tid, 1, 1, "Press", sets=10, reps=10, weight=10)
    await exercises.update_with_sets(ex_id, "Press", None, [(2, 2.5)])
    assert await StatisticsService(database).exercise_volume(ex_id) == 5.0


@pytest.mark.asyncio
async def test_day_week_and_template_volume(database):
    tid, *_ = await _plan(database)
    stats = StatisticsService(database)
    assert await stats.day_volume(tid, 1, 1) == 1000.0
    assert await stats.day_volume(tid, 1, 2) == 0.0
    week = await stats.week_volume(tid, 1)
    assert week == {1: 1000.0, 2: 0.0, 3: 1500.0, 4: 0.0, 5: 0.0, 6: 0.0, 7: 0.0}
    assert await stats.template_volume(tid) == 2500.0


@pytest.mark.asyncio
async def test_volume_is_rounded_to_two_places(database):
    tid = await TemplateRepository(database).create("Plan", 1)
    exercises = ExerciseRepository(database)
    ex_id = await exercises.add(tid, 1, 1, "Curl")
    await exercises.update_with_sets(ex_id, "Curl", None, [(3, 0.1), (3, 0.2)])
    assert await StatisticsService(database).day_volume(tid, 1, 1) == 0.9


@pytest.mark.asyncio
async def test_template_summary(database):
    tid, *_ = await _plan(database)
    for day in range(1, 8):
        await DayRepository(database).set_day_completed(tid, 1, day, True)
    summary = await StatisticsService(database).template_summary(tid)
    assert summary == {
        "id": tid,
        "name": "Volume plan",
        "weeks": 2,
        "weeks_completed": 1,
        "days_completed": 7,
        "exercises": 3,
        "sets": 3,
        "volume": 2500.0,
        "volume_by_week": {1: 2500.0, 2: 0.0},
    }


@pytest.mark.asyncio
async def test_summary_of_missing_template(database):
    with pytest.raises(NotFoundError):
        await StatisticsService(database).template_summary(5)


@pytest.mark.parametrize(
    "done, total, expected",
    [(0, 7, 0.0), (7, 7, 1.0), (3, 7, 0.43), (9, 7, 1.0), (2, 0, 0.0), (2, None, 0.0)],
)
def test_completion_ratio(done, total, expected):
    assert StatisticsService.completion_ratio(done, total) == expected
