import os
import sys
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import Database, DayRepository, TemplateRepository, WeekRepository
from errors import ValidationError


@pytest.fixture
def database(tmp_path):
    return Database(str(tmp_path / "weeks.db"))


@pytest.mark.asyncio
async def test_seventh_day_completes_week_and_uncompleting_keeps_it(database):
    tid = await TemplateRepository(database).create("Plan", 2)
    weeks = WeekRepository(database)
    days = DayRepository(database)
    await weeks.ensure_week_days(tid, 1)

    for day in range(1, 7):
        result = await days.set_day_completed(tid, 1, day, True)
    assert result["days_completed"] == 6
    assert result["week_completed"] is False
    assert (await weeks.get_week_status(tid, 1))["completed"] is False

    result = await days.set_day_completed(tid, 1, 7, True)
    assert result == {"day_completed": True, "days_completed": 7, "week_completed": True}

    await days.set_day_completed(tid, 1, 1, False)
    status = await weeks.get_week_status(tid, 1)
    assert status == {"completed": True, "days_completed": 6}
    assert await days.get_day_completed(tid, 1, 1) is False
    assert await days.get_day_completed(tid, 1, 2) is True


@pytest.mark.asyncio
async def test_list_weeks_synthesizes_declared_range(database):
    tid = await TemplateRepository(database).create("Plan", 3)
    weeks = WeekRepository(database)
    await DayRepository(database).set_day_completed(tid, 2, 4, True)

    listing = await weeks.list_weeks(tid)
    assert listing == [
        {"week": 1, "week_completed": False, "days_completed": 0},
        {"week": 2, "week_completed": False, "days_completed": 1},
        {"week": 3, "week_completed": False, "days_completed": 0},
    ]


@pytest.mark.asyncio
async def test_list_weeks_uses_observed_max_over_declared(database):
    tid = await TemplateRepository(database).create("Plan", 2)
    weeks = WeekRepository(database)
    await weeks.ensure_week_days(tid, 5)
    await weeks.set_week_status(tid, 5, True)

    listing = await weeks.list_weeks(tid)
    assert [w["week"] for w in listing] == [1, 2, 3, 4, 5]
    assert listing[-1]["week_completed"] is True


@pytest.mark.asyncio
async def test_list_weeks_without_declared_count(database):
    tid = await TemplateRepository(database).create("Open ended")
    weeks = WeekRepository(database)
    assert await weeks.list_weeks(tid) == []
    await weeks.ensure_week_days(tid, 2)
    assert [w["week"] for w in await weeks.list_weeks(tid)] == [1, 2]


@pytest.mark.asyncio
async def test_ensure_week_days_is_idempotent(database):
    tid = await TemplateRepository(database).create("Plan", 1)
    weeks = WeekRepository(database)
    await weeks.ensure_week_days(tid, 1)
    await weeks.ensure_week_days(tid, 1)
    rows = await database.query(
        "SELECT day FROM days WHERE template_id = ? AND week = 1 ORDER BY day", (tid,)
    )
    assert [r["day"] for r in rows] == list(range(1, 8))


@pytest.mark.asyncio
async def test_explicit_week_status_toggle(database):
    tid = await TemplateRepository(database).create("Plan", 1)
    weeks = WeekRepository(database)
    await weeks.set_week_status(tid, 1, True)
    assert (await weeks.get_week_status(tid, 1))["completed"] is True
    await weeks.set_week_status(tid, 1, False)
    assert (await weeks.get_week_status(tid, 1))["completed"] is False


@pytest.mark.asyncio
async def test_status_of_unseeded_week(database):
    tid = await TemplateRepository(database).create("Plan", 1)
    status = await WeekRepository(database).get_week_status(tid, 4)
    assert status == {"completed": False, "days_completed": 0}


@pytest.mark.asyncio
@pytest.mark.parametrize("week, day", [(1, 0), (1, 8), (0, 1), ("x", 1)])
async def test_day_toggle_rejects_out_of_range(database, week, day):
    tid = await TemplateRepository(database).create("Plan", 1)
    with pytest.raises(ValidationError):
        await DayRepository(database).set_day_completed(tid, week, day, True)
