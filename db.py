import sqlite3
import aiosqlite
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

from errors import (
    ConstraintError,
    DuplicateNameError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from tools import MathTools, NumberParser

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7


@dataclass
class ExecuteResult:
    """Outcome of a single mutating statement."""

    rowcount: int
    lastrowid: Optional[int]


@dataclass
class MigrationOutcome:
    name: str
    status: str
    error: Optional[str] = None


@dataclass
class MigrationStep:
    """One additive schema change applied in its own fail-soft boundary.

    ``apply`` receives an open connection and returns ``True`` when it
    changed the schema or data and ``False`` when there was nothing to do.
    """

    name: str
    apply: Callable[[aiosqlite.Connection], Awaitable[bool]]


class Transaction:
    """Statement helpers bound to one connection inside ``BEGIN ... COMMIT``."""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def execute(self, query: str, params: Sequence = ()) -> ExecuteResult:
        try:
            cursor = await self._conn.execute(query, tuple(params))
        except sqlite3.Error as exc:
            raise Database._storage_error(exc) from exc
        return ExecuteResult(cursor.rowcount, cursor.lastrowid)

    async def query(self, query: str, params: Sequence = ()) -> List[dict]:
        try:
            cursor = await self._conn.execute(query, tuple(params))
            rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise Database._storage_error(exc) from exc
        return [dict(r) for r in rows]

    async def query_one(self, query: str, params: Sequence = ()) -> Optional[dict]:
        rows = await self.query(query, params)
        return rows[0] if rows else None


class Database:
    """Provides SQLite connection management and schema initialization.

    A ``Database`` is the single storage handle shared by every repository.
    Schema creation and migrations run once, lazily, the first time any
    operation awaits :meth:`ensure_ready`. All statements are serialized
    through one lock so interleaved coroutines never observe a partially
    applied workflow.
    """

    _TABLE_DEFINITIONS = {
        "templates": (
            """CREATE TABLE IF NOT EXISTS templates (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    weeks INTEGER
                );""",
            {"name": "TEXT", "weeks": "INTEGER"},
        ),
        "weeks": (
            """CREATE TABLE IF NOT EXISTS weeks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    template_id INTEGER NOT NULL,
                    week INTEGER NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    UNIQUE(template_id, week),
                    FOREIGN KEY(template_id) REFERENCES templates(id) ON DELETE CASCADE
                );""",
            {"completed": "INTEGER NOT NULL DEFAULT 0"},
        ),
        "days": (
            """CREATE TABLE IF NOT EXISTS days (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    template_id INTEGER NOT NULL,
                    week INTEGER NOT NULL,
                    day INTEGER NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    UNIQUE(template_id, week, day),
                    FOREIGN KEY(template_id) REFERENCES templates(id) ON DELETE CASCADE
                );""",
            {"completed": "INTEGER NOT NULL DEFAULT 0"},
        ),
        "exercises": (
            """CREATE TABLE IF NOT EXISTS exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    template_id INTEGER NOT NULL,
                    week INTEGER NOT NULL,
                    day INTEGER NOT NULL,
                    name TEXT,
                    sets INTEGER,
                    reps INTEGER,
                    weight REAL,
                    notes TEXT,
                    FOREIGN KEY(template_id) REFERENCES templates(id) ON DELETE CASCADE
                );""",
            {
                "name": "TEXT",
                "sets": "INTEGER",
                "reps": "INTEGER",
                "weight": "REAL",
                "notes": "TEXT",
            },
        ),
        "exercise_sets": (
            """CREATE TABLE IF NOT EXISTS exercise_sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    exercise_id INTEGER NOT NULL,
                    set_number INTEGER NOT NULL,
                    reps INTEGER,
                    weight REAL,
                    UNIQUE(exercise_id, set_number),
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE
                );""",
            {"reps": "INTEGER", "weight": "REAL"},
        ),
    }

    _INDEX_DEFINITIONS = {
        "idx_templates_name": "CREATE UNIQUE INDEX IF NOT EXISTS idx_templates_name ON templates(name);",
        "idx_weeks_template_week": "CREATE UNIQUE INDEX IF NOT EXISTS idx_weeks_template_week ON weeks(template_id, week);",
        "idx_days_template_week_day": "CREATE UNIQUE INDEX IF NOT EXISTS idx_days_template_week_day ON days(template_id, week, day);",
        "idx_exercise_sets_number": "CREATE UNIQUE INDEX IF NOT EXISTS idx_exercise_sets_number ON exercise_sets(exercise_id, set_number);",
        "idx_exercises_day": "CREATE INDEX IF NOT EXISTS idx_exercises_day ON exercises(template_id, week, day);",
    }

    # Children first so drops never trip a foreign key.
    _DROP_ORDER = ("exercise_sets", "exercises", "days", "weeks", "templates")

    def __init__(self, db_path: str = "workout.db") -> None:
        self._db_path = db_path
        self._ready = False
        self._init_lock = asyncio.Lock()
        self._lock = asyncio.Lock()
        self.migration_log: List[MigrationOutcome] = []

    @property
    def is_ready(self) -> bool:
        return self._ready

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            await conn.execute("PRAGMA foreign_keys = ON;")
            yield conn
        finally:
            await conn.close()

    @staticmethod
    def _storage_error(exc: sqlite3.Error) -> StorageError:
        if isinstance(exc, sqlite3.IntegrityError):
            return ConstraintError(str(exc))
        return StorageError(str(exc))

    # -- readiness -------------------------------------------------------

    async def ensure_ready(self) -> None:
        """Create tables and apply migrations once per instance."""
        if self._ready:
            return
        async with self._init_lock:
            if self._ready:
                return
            await self._initialize()
            self._ready = True

    async def _initialize(self) -> None:
        logger.info("initializing schema at %s", self._db_path)
        async with self._lock:
            try:
                async with self._async_connection() as conn:
                    await self._create_tables(conn)
                    self.migration_log = await self._run_migrations(conn)
            except sqlite3.Error as exc:
                logger.error("base schema creation failed: %s", exc)
                raise self._storage_error(exc) from exc
        logger.info("schema ready (%d migration steps)", len(self.migration_log))

    async def _create_tables(self, conn: aiosqlite.Connection) -> None:
        await conn.execute("BEGIN;")
        try:
            for table, (sql, _columns) in self._TABLE_DEFINITIONS.items():
                await conn.execute(sql)
                logger.debug("ensured table %s", table)
        except BaseException:
            await conn.rollback()
            raise
        await conn.commit()

    def _migration_steps(self) -> List[MigrationStep]:
        steps: List[MigrationStep] = []
        for table, (_sql, columns) in self._TABLE_DEFINITIONS.items():
            for column, ddl in columns.items():
                steps.append(
                    MigrationStep(
                        f"add column {table}.{column}",
                        self._add_column_step(table, column, ddl),
                    )
                )
        for index, sql in self._INDEX_DEFINITIONS.items():
            steps.append(MigrationStep(f"create index {index}", self._index_step(index, sql)))
        steps.append(MigrationStep("backfill templates.weeks", self._backfill_weeks))
        return steps

    @staticmethod
    def _add_column_step(table: str, column: str, ddl: str):
        async def apply(conn: aiosqlite.Connection) -> bool:
            cursor = await conn.execute(f"PRAGMA table_info({table});")
            existing = [row[1] for row in await cursor.fetchall()]
            if column in existing:
                return False
            await conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {ddl};")
            return True

        return apply

    @staticmethod
    def _index_step(index: str, sql: str):
        async def apply(conn: aiosqlite.Connection) -> bool:
            cursor = await conn.execute(
                "SELECT name FROM sqlite_master WHERE type='index' AND name=?;",
                (index,),
            )
            if await cursor.fetchone() is not None:
                return False
            await conn.execute(sql)
            return True

        return apply

    @staticmethod
    async def _backfill_weeks(conn: aiosqlite.Connection) -> bool:
        cursor = await conn.execute(
            """UPDATE templates
                  SET weeks = (
                      SELECT COALESCE(MAX(week), 0)
                        FROM weeks w
                       WHERE w.template_id = templates.id
                  )
                WHERE weeks IS NULL OR weeks < 0;"""
        )
        return cursor.rowcount > 0

    async def _run_migrations(
        self, conn: aiosqlite.Connection
    ) -> List[MigrationOutcome]:
        outcomes: List[MigrationOutcome] = []
        await conn.execute("BEGIN;")
        try:
            for position, step in enumerate(self._migration_steps()):
                outcome = await self._soft_step(conn, f"m{position}", step)
                outcomes.append(outcome)
        except BaseException:
            await conn.rollback()
            raise
        await conn.commit()
        return outcomes

    @staticmethod
    async def _soft_step(
        conn: aiosqlite.Connection, savepoint: str, step: MigrationStep
    ) -> MigrationOutcome:
        """Run ``step`` inside a savepoint, recording instead of raising."""
        await conn.execute(f"SAVEPOINT {savepoint};")
        try:
            changed = await step.apply(conn)
        except sqlite3.Error as exc:
            await conn.execute(f"ROLLBACK TO {savepoint};")
            await conn.execute(f"RELEASE {savepoint};")
            logger.warning("migration step '%s' failed: %s", step.name, exc)
            return MigrationOutcome(step.name, "failed", str(exc))
        await conn.execute(f"RELEASE {savepoint};")
        status = "applied" if changed else "skipped"
        if changed:
            logger.info("migration step '%s' applied", step.name)
        return MigrationOutcome(step.name, status)

    # -- query executor --------------------------------------------------

    @asynccontextmanager
    async def _session(self):
        await self.ensure_ready()
        async with self._lock:
            try:
                async with self._async_connection() as conn:
                    yield conn
            except sqlite3.Error as exc:
                raise self._storage_error(exc) from exc

    async def query(self, query: str, params: Sequence = ()) -> List[dict]:
        async with self._session() as conn:
            cursor = await conn.execute(query, tuple(params))
            rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    async def query_one(self, query: str, params: Sequence = ()) -> Optional[dict]:
        rows = await self.query(query, params)
        return rows[0] if rows else None

    async def execute(self, query: str, params: Sequence = ()) -> ExecuteResult:
        async with self._session() as conn:
            cursor = await conn.execute(query, tuple(params))
            return ExecuteResult(cursor.rowcount, cursor.lastrowid)

    @asynccontextmanager
    async def transaction(self):
        """Yield a :class:`Transaction`; any exception rolls back every statement."""
        async with self._session() as conn:
            await conn.execute("BEGIN;")
            try:
                yield Transaction(conn)
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()

    async def execute_batch(
        self, statements: Iterable[Tuple[str, Sequence]]
    ) -> List[ExecuteResult]:
        """Execute ``statements`` as one all-or-nothing unit."""
        results: List[ExecuteResult] = []
        async with self.transaction() as tx:
            for query, params in statements:
                results.append(await tx.execute(query, params))
        return results

    # -- destructive reset -----------------------------------------------

    async def reset(self) -> None:
        """Drop every table, clear id counters and rebuild an empty schema."""
        logger.warning("reset: dropping all tables in %s", self._db_path)
        statements = ["DROP INDEX IF EXISTS idx_templates_name;"]
        statements += [f"DROP TABLE IF EXISTS {t};" for t in self._DROP_ORDER]
        names = ", ".join(f"'{t}'" for t in self._DROP_ORDER)
        statements.append(f"DELETE FROM sqlite_sequence WHERE name IN ({names});")
        async with self._lock:
            try:
                async with self._async_connection() as conn:
                    await conn.execute("PRAGMA foreign_keys = OFF;")
                    await conn.execute("BEGIN;")
                    for position, sql in enumerate(statements):
                        step = MigrationStep(sql, self._statement_step(sql))
                        await self._soft_step(conn, f"r{position}", step)
                    await conn.commit()
            except sqlite3.Error as exc:
                raise self._storage_error(exc) from exc
            self._ready = False
            self.migration_log = []
        await self.ensure_ready()
        logger.warning("reset: done")

    @staticmethod
    def _statement_step(sql: str):
        async def apply(conn: aiosqlite.Connection) -> bool:
            await conn.execute(sql)
            return True

        return apply


class BaseRepository:
    """Base repository providing helper methods."""

    def __init__(self, database: Database) -> None:
        self.db = database

    async def execute(self, query: str, params: Sequence = ()) -> int:
        result = await self.db.execute(query, params)
        return result.lastrowid

    async def fetch_all(self, query: str, params: Sequence = ()) -> List[dict]:
        return await self.db.query(query, params)

    async def fetch_one(self, query: str, params: Sequence = ()) -> Optional[dict]:
        return await self.db.query_one(query, params)

    @staticmethod
    def check_week(week: object) -> int:
        value = NumberParser.parse_int(week, strict=True, minimum=1, field="week")
        if value is None:
            raise ValidationError("week is required")
        return value

    @staticmethod
    def check_day(day: object) -> int:
        value = NumberParser.parse_int(day, strict=True, minimum=1, field="day")
        if value is None or value > DAYS_PER_WEEK:
            raise ValidationError(f"day must be between 1 and {DAYS_PER_WEEK}")
        return value

    @staticmethod
    def seed_week_statements(template_id: int, week: int) -> List[Tuple[str, tuple]]:
        """Statements creating a week row and its seven day rows if absent."""
        stmts = [
            (
                "INSERT OR IGNORE INTO weeks (template_id, week, completed) VALUES (?, ?, 0);",
                (template_id, week),
            )
        ]
        stmts += [
            (
                "INSERT OR IGNORE INTO days (template_id, week, day, completed) VALUES (?, ?, ?, 0);",
                (template_id, week, day),
            )
            for day in range(1, DAYS_PER_WEEK + 1)
        ]
        return stmts


class TemplateRepository(BaseRepository):
    """Repository for workout plan templates."""

    async def create(self, name: str, weeks: object = None) -> int:
        trimmed = name.strip() if isinstance(name, str) else ""
        if not trimmed:
            raise ValidationError("Template name is required.")
        declared = NumberParser.parse_int(weeks, strict=True, minimum=1, field="weeks")
        try:
            existing = await self.fetch_one(
                "SELECT id FROM templates WHERE name = ? LIMIT 1;", (trimmed,)
            )
        except StorageError as exc:
            logger.warning("create: uniqueness pre-check failed (continuing): %s", exc)
            existing = None
        if existing:
            logger.warning("create: duplicate name blocked: %s", trimmed)
            raise DuplicateNameError()
        try:
            template_id = await self.execute(
                "INSERT INTO templates (name, weeks) VALUES (?, ?);",
                (trimmed, declared),
            )
        except ConstraintError as exc:
            logger.warning("create: insert rejected by constraint: %s", exc)
            raise DuplicateNameError() from exc
        logger.info("created template %s (%s)", template_id, trimmed)
        return template_id

    async def fetch_all(self) -> List[dict]:
        return await super().fetch_all(
            "SELECT id, name, weeks FROM templates ORDER BY id DESC;"
        )

    async def fetch_detail(self, template_id: int) -> dict:
        row = await self.fetch_one(
            "SELECT id, name, weeks FROM templates WHERE id = ?;", (template_id,)
        )
        if row is None:
            raise NotFoundError("template not found")
        return row

    async def name_exists(self, name: str) -> bool:
        row = await self.fetch_one(
            "SELECT id FROM templates WHERE name = ? LIMIT 1;", (name.strip(),)
        )
        return row is not None

    async def delete(self, template_id: int) -> None:
        result = await self.db.execute(
            "DELETE FROM templates WHERE id = ?;", (template_id,)
        )
        if result.rowcount == 0:
            raise NotFoundError("template not found")
        logger.info("deleted template %s", template_id)

    async def reset_all(self) -> None:
        await self.db.reset()


class WeekRepository(BaseRepository):
    """Week rows and the per-week completion roll-up."""

    _LIST_SQL = """WITH RECURSIVE total(n) AS (
                       SELECT MAX(
                           COALESCE((SELECT weeks FROM templates WHERE id = ?), 0),
                           COALESCE((SELECT MAX(week) FROM weeks WHERE template_id = ?), 0)
                       )
                   ),
                   seq(week) AS (
                       SELECT 1 WHERE (SELECT n FROM total) > 0
                       UNION ALL
                       SELECT week + 1 FROM seq WHERE week < (SELECT n FROM total)
                   )
                   SELECT s.week AS week,
                          COALESCE(wk.completed, 0) AS week_completed,
                          (SELECT COUNT(1) FROM days d
                            WHERE d.template_id = ? AND d.week = s.week AND d.completed = 1
                          ) AS days_completed
                     FROM seq s
                LEFT JOIN weeks wk ON wk.template_id = ? AND wk.week = s.week
                 ORDER BY s.week ASC;"""

    async def ensure_week_days(self, template_id: int, week: int) -> None:
        week = self.check_week(week)
        await self.db.execute_batch(self.seed_week_statements(template_id, week))
        logger.debug("seeded week %s of template %s", week, template_id)

    async def list_weeks(self, template_id: int) -> List[dict]:
        rows = await self.fetch_all(
            self._LIST_SQL, (template_id, template_id, template_id, template_id)
        )
        return [
            {
                "week": r["week"],
                "week_completed": bool(r["week_completed"]),
                "days_completed": r["days_completed"],
            }
            for r in rows
        ]

    async def get_week_status(self, template_id: int, week: int) -> dict:
        row = await self.fetch_one(
            """SELECT COALESCE(w.completed, 0) AS completed,
                      (SELECT COUNT(1) FROM days d
                        WHERE d.template_id = ? AND d.week = ? AND d.completed = 1
                      ) AS days_completed
                 FROM (SELECT 1) x
            LEFT JOIN weeks w ON w.template_id = ? AND w.week = ?;""",
            (template_id, week, template_id, week),
        )
        return {
            "completed": bool(row["completed"]),
            "days_completed": row["days_completed"],
        }

    async def set_week_status(self, template_id: int, week: int, completed: bool) -> None:
        week = self.check_week(week)
        await self.db.execute_batch(
            [
                (
                    "INSERT OR IGNORE INTO weeks (template_id, week, completed) VALUES (?, ?, 0);",
                    (template_id, week),
                ),
                (
                    "UPDATE weeks SET completed = ? WHERE template_id = ? AND week = ?;",
                    (1 if completed else 0, template_id, week),
                ),
            ]
        )


class DayRepository(BaseRepository):
    """Day completion flags."""

    async def get_day_completed(self, template_id: int, week: int, day: int) -> bool:
        row = await self.fetch_one(
            "SELECT completed FROM days WHERE template_id = ? AND week = ? AND day = ?;",
            (template_id, week, day),
        )
        return bool(row and row["completed"])

    async def set_day_completed(
        self, template_id: int, week: int, day: int, completed: bool
    ) -> dict:
        """Set a day's flag and mark the week complete once all seven are done.

        Clearing a day never clears the week flag.
        """
        week = self.check_week(week)
        day = self.check_day(day)
        async with self.db.transaction() as tx:
            for query, params in self.seed_week_statements(template_id, week):
                await tx.execute(query, params)
            await tx.execute(
                "UPDATE days SET completed = ? WHERE template_id = ? AND week = ? AND day = ?;",
                (1 if completed else 0, template_id, week, day),
            )
            row = await tx.query_one(
                "SELECT COUNT(1) AS done FROM days WHERE template_id = ? AND week = ? AND completed = 1;",
                (template_id, week),
            )
            done = row["done"] if row else 0
            if done == DAYS_PER_WEEK:
                logger.info(
                    "all days complete, marking week %s of template %s", week, template_id
                )
                await tx.execute(
                    "UPDATE weeks SET completed = 1 WHERE template_id = ? AND week = ?;",
                    (template_id, week),
                )
            status = await tx.query_one(
                "SELECT completed FROM weeks WHERE template_id = ? AND week = ?;",
                (template_id, week),
            )
        return {
            "day_completed": bool(completed),
            "days_completed": done,
            "week_completed": bool(status and status["completed"]),
        }


class ExerciseRepository(BaseRepository):
    """Repository for exercises and their set rows."""

    @staticmethod
    def _clean_name(name: object) -> str:
        trimmed = name.strip() if isinstance(name, str) else ""
        if not trimmed:
            raise ValidationError("Exercise name is required.")
        return trimmed

    @staticmethod
    def _clean_scalars(sets: object, reps: object, weight: object) -> tuple:
        return (
            NumberParser.parse_int(sets, strict=True, minimum=0, field="sets"),
            NumberParser.parse_int(reps, strict=True, minimum=0, field="reps"),
            NumberParser.parse_float(weight, strict=True, field="weight"),
        )

    @staticmethod
    def clean_set_rows(set_rows: Iterable) -> List[Tuple[int, Optional[int], Optional[float]]]:
        """Number set rows 1..n and coerce their reps/weight strictly."""
        cleaned = []
        for position, row in enumerate(set_rows or [], start=1):
            if isinstance(row, dict):
                reps, weight = row.get("reps"), row.get("weight")
            else:
                reps, weight = row
            cleaned.append(
                (
                    position,
                    NumberParser.parse_int(reps, strict=True, minimum=0, field="reps"),
                    NumberParser.parse_float(weight, strict=True, field="weight"),
                )
            )
        return cleaned

    async def add(
        self,
        template_id: int,
        week: int,
        day: int,
        name: str,
        sets: object = None,
        reps: object = None,
        weight: object = None,
        notes: Optional[str] = None,
    ) -> int:
        week = self.check_week(week)
        day = self.check_day(day)
        values = self._clean_scalars(sets, reps, weight)
        exercise_id = await self.execute(
            "INSERT INTO exercises (template_id, week, day, name, sets, reps, weight, notes) VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
            (template_id, week, day, self._clean_name(name), *values, notes or None),
        )
        logger.debug("added exercise %s to template %s w%s d%s", exercise_id, template_id, week, day)
        return exercise_id

    async def update(
        self,
        exercise_id: int,
        name: str,
        sets: object = None,
        reps: object = None,
        weight: object = None,
        notes: Optional[str] = None,
    ) -> int:
        values = self._clean_scalars(sets, reps, weight)
        result = await self.db.execute(
            """UPDATE exercises
                  SET name = ?, sets = ?, reps = ?, weight = ?, notes = ?
                WHERE id = ?;""",
            (self._clean_name(name), *values, notes or None, exercise_id),
        )
        return result.rowcount

    async def update_with_sets(
        self,
        exercise_id: int,
        name: str,
        notes: Optional[str],
        set_rows: Iterable,
    ) -> None:
        """Update name/notes and replace every set row in one transaction."""
        clean_name = self._clean_name(name)
        rows = self.clean_set_rows(set_rows)
        async with self.db.transaction() as tx:
            result = await tx.execute(
                "UPDATE exercises SET name = ?, notes = ? WHERE id = ?;",
                (clean_name, notes or None, exercise_id),
            )
            if result.rowcount == 0:
                raise NotFoundError("exercise not found")
            await tx.execute(
                "DELETE FROM exercise_sets WHERE exercise_id = ?;", (exercise_id,)
            )
            for set_number, reps, weight in rows:
                await tx.execute(
                    "INSERT INTO exercise_sets (exercise_id, set_number, reps, weight) VALUES (?, ?, ?, ?);",
                    (exercise_id, set_number, reps, weight),
                )

    async def fetch_detail(self, exercise_id: int) -> dict:
        row = await self.fetch_one(
            "SELECT id, template_id, week, day, name, sets, reps, weight, notes FROM exercises WHERE id = ?;",
            (exercise_id,),
        )
        if row is None:
            raise NotFoundError("exercise not found")
        row["set_rows"] = await self.fetch_sets(exercise_id)
        row["volume"] = self.volume_of(row)
        return row

    async def fetch_sets(self, exercise_id: int) -> List[dict]:
        return await self.fetch_all(
            "SELECT set_number, reps, weight FROM exercise_sets WHERE exercise_id = ? ORDER BY set_number;",
            (exercise_id,),
        )

    async def fetch_for_day(self, template_id: int, week: int, day: int) -> List[dict]:
        exercises = await self.fetch_all(
            """SELECT id, template_id, week, day, name, sets, reps, weight, notes
                 FROM exercises
                WHERE template_id = ? AND week = ? AND day = ?
                ORDER BY id ASC;""",
            (template_id, week, day),
        )
        set_rows = await self.fetch_all(
            """SELECT s.exercise_id, s.set_number, s.reps, s.weight
                 FROM exercise_sets s
                 JOIN exercises e ON e.id = s.exercise_id
                WHERE e.template_id = ? AND e.week = ? AND e.day = ?
                ORDER BY s.exercise_id, s.set_number;""",
            (template_id, week, day),
        )
        grouped: dict[int, list] = {}
        for row in set_rows:
            grouped.setdefault(row.pop("exercise_id"), []).append(row)
        for ex in exercises:
            ex["set_rows"] = grouped.get(ex["id"], [])
            ex["volume"] = self.volume_of(ex)
        return exercises

    @staticmethod
    def volume_of(exercise: dict) -> float:
        """Set-row volume, or the legacy scalar product when there are no rows."""
        rows = exercise.get("set_rows") or []
        set_volume = (
            MathTools.volume((r["reps"], r["weight"]) for r in rows) if rows else None
        )
        vol = MathTools.exercise_volume(
            set_volume, exercise.get("sets"), exercise.get("reps"), exercise.get("weight")
        )
        return MathTools.round_volume(vol)

    async def delete(self, exercise_id: int) -> None:
        await self.execute("DELETE FROM exercises WHERE id = ?;", (exercise_id,))

    async def delete_many(self, exercise_ids: Iterable[int]) -> int:
        ids = list(dict.fromkeys(exercise_ids))
        if not ids:
            return 0
        results = await self.db.execute_batch(
            [("DELETE FROM exercises WHERE id = ?;", (eid,)) for eid in ids]
        )
        return sum(r.rowcount for r in results)
