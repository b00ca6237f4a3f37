from __future__ import annotations
import logging
from typing import Iterable, List

from db import BaseRepository, Database, TemplateRepository
from errors import NotFoundError

logger = logging.getLogger(__name__)


class PlannerService:
    """Copies week structure between weeks of a template."""

    def __init__(
        self,
        database: Database,
        template_repo: TemplateRepository | None = None,
    ) -> None:
        self.db = database
        self.templates = template_repo or TemplateRepository(database)

    async def copy_week(
        self,
        template_id: int,
        source_week: int,
        dest_weeks: Iterable[int],
        include_sets: bool = True,
    ) -> List[int]:
        """Replace the exercises of every ``dest_weeks`` week with copies of ``source_week``.

        Each destination gets its week row and seven day rows, loses its
        current exercises, and receives the source exercises by day with
        name and notes. Legacy ``sets``/``reps``/``weight`` columns are left
        empty on the copies; set rows are copied when ``include_sets``.
        Everything happens in one transaction. Returns the weeks written.
        """
        source_week = BaseRepository.check_week(source_week)
        targets = [
            w
            for w in dict.fromkeys(BaseRepository.check_week(w) for w in dest_weeks)
            if w != source_week
        ]
        if not targets:
            return []
        async with self.db.transaction() as tx:
            if await tx.query_one(
                "SELECT id FROM templates WHERE id = ?;", (template_id,)
            ) is None:
                raise NotFoundError("template not found")
            exercises = await tx.query(
                "SELECT id, day, name, notes FROM exercises WHERE template_id = ? AND week = ? ORDER BY id;",
                (template_id, source_week),
            )
            set_rows: dict[int, list] = {}
            if include_sets:
                for row in await tx.query(
                    """SELECT s.exercise_id, s.set_number, s.reps, s.weight
                         FROM exercise_sets s
                         JOIN exercises e ON e.id = s.exercise_id
                        WHERE e.template_id = ? AND e.week = ?
                        ORDER BY s.exercise_id, s.set_number;""",
                    (template_id, source_week),
                ):
                    set_rows.setdefault(row["exercise_id"], []).append(row)
            for week in targets:
                for query, params in BaseRepository.seed_week_statements(template_id, week):
                    await tx.execute(query, params)
                await tx.execute(
                    "DELETE FROM exercises WHERE template_id = ? AND week = ?;",
                    (template_id, week),
                )
                for ex in exercises:
                    result = await tx.execute(
                        "INSERT INTO exercises (template_id, week, day, name, sets, reps, weight, notes) VALUES (?, ?, ?, ?, NULL, NULL, NULL, ?);",
                        (template_id, week, ex["day"], ex["name"], ex["notes"]),
                    )
                    for s in set_rows.get(ex["id"], []):
                        await tx.execute(
                            "INSERT INTO exercise_sets (exercise_id, set_number, reps, weight) VALUES (?, ?, ?, ?);",
                            (result.lastrowid, s["set_number"], s["reps"], s["weight"]),
                        )
        logger.info(
            "copied week %s of template %s to weeks %s (%d exercises)",
            source_week,
            template_id,
            targets,
            len(exercises),
        )
        return targets
