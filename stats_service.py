from __future__ import annotations
from typing import Dict, List, Optional

from db import DAYS_PER_WEEK, Database, TemplateRepository, WeekRepository
from tools import MathTools


class StatisticsService:
    """Compute training volume and completion statistics for templates."""

    _VOLUME_SQL = """SELECT e.id, e.week, e.day, e.sets, e.reps, e.weight,
                            COUNT(s.id) AS set_count,
                            COALESCE(SUM(COALESCE(s.reps, 0) * COALESCE(s.weight, 0)), 0) AS set_volume
                       FROM exercises e
                  LEFT JOIN exercise_sets s ON s.exercise_id = e.id
                      WHERE {where}
                   GROUP BY e.id
                   ORDER BY e.week, e.day, e.id;"""

    def __init__(
        self,
        database: Database,
        template_repo: TemplateRepository | None = None,
        week_repo: WeekRepository | None = None,
    ) -> None:
        self.db = database
        self.templates = template_repo or TemplateRepository(database)
        self.weeks = week_repo or WeekRepository(database)

    @staticmethod
    def _exercise_volume(row: dict) -> float:
        set_volume = row["set_volume"] if row["set_count"] else None
        return MathTools.exercise_volume(set_volume, row["sets"], row["reps"], row["weight"])

    async def _volume_rows(self, where: str, params: tuple) -> List[dict]:
        return await self.db.query(self._VOLUME_SQL.format(where=where), params)

    async def exercise_volume(self, exercise_id: int) -> float:
        """Volume of one exercise; set rows win over the legacy scalar columns."""
        rows = await self._volume_rows("e.id = ?", (exercise_id,))
        if not rows:
            return 0.0
        return MathTools.round_volume(self._exercise_volume(rows[0]))

    async def day_volume(self, template_id: int, week: int, day: int) -> float:
        rows = await self._volume_rows(
            "e.template_id = ? AND e.week = ? AND e.day = ?", (template_id, week, day)
        )
        return MathTools.round_volume(sum(self._exercise_volume(r) for r in rows))

    async def week_volume(self, template_id: int, week: int) -> Dict[int, float]:
        """Volume per day (1-7) for one week, days without exercises at 0."""
        rows = await self._volume_rows(
            "e.template_id = ? AND e.week = ?", (template_id, week)
        )
        totals = {day: 0.0 for day in range(1, DAYS_PER_WEEK + 1)}
        for r in rows:
            totals[r["day"]] = totals.get(r["day"], 0.0) + self._exercise_volume(r)
        return {day: MathTools.round_volume(v) for day, v in totals.items()}

    async def template_volume(self, template_id: int) -> float:
        rows = await self._volume_rows("e.template_id = ?", (template_id,))
        return MathTools.round_volume(sum(self._exercise_volume(r) for r in rows))

    async def template_summary(self, template_id: int) -> dict:
        detail = await self.templates.fetch_detail(template_id)
        weeks = await self.weeks.list_weeks(template_id)
        rows = await self._volume_rows("e.template_id = ?", (template_id,))
        by_week: Dict[int, float] = {}
        for r in rows:
            by_week[r["week"]] = by_week.get(r["week"], 0.0) + self._exercise_volume(r)
        return {
            "id": detail["id"],
            "name": detail["name"],
            "weeks": len(weeks),
            "weeks_completed": sum(1 for w in weeks if w["week_completed"]),
            "days_completed": sum(w["days_completed"] for w in weeks),
            "exercises": len(rows),
            "sets": sum(r["set_count"] for r in rows),
            "volume": MathTools.round_volume(sum(by_week.values())),
            "volume_by_week": {
                week: MathTools.round_volume(v) for week, v in sorted(by_week.items())
            },
        }

    @staticmethod
    def completion_ratio(days_completed: int, total_days: Optional[int] = 7) -> float:
        """Fraction of a week's days that are complete, clamped to [0, 1]."""
        if not total_days:
            return 0.0
        return round(max(0.0, min(days_completed / total_days, 1.0)), 2)
