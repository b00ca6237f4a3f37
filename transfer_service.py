"""Versioned JSON export and import of complete templates.

Export documents look like::

    {
        "type": "liftplan.templates.v1",
        "exportedAt": "2024-01-01T12:00:00+00:00",
        "templates": [
            {
                "name": "...", "weeksDeclared": 4,
                "weeksTable": [{"week": 1, "completed": false}],
                "days": [{"week": 1, "day": 1, "completed": true}],
                "exercises": [
                    {"week": 1, "day": 1, "name": "Squat", "sets": null,
                     "reps": null, "weight": null, "notes": null,
                     "setRows": [{"n": 1, "reps": 5, "weight": 100.0}]}
                ]
            }
        ]
    }

Incoming documents are validated into the models below before any write.
Rows whose week or day cannot be placed are dropped, numeric-looking values
are coerced and anything unparseable becomes ``None``.
"""
from __future__ import annotations
import datetime
import json
import logging
import re
from typing import Any, Iterable, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)
from pydantic import ValidationError as SchemaError

from db import DAYS_PER_WEEK, BaseRepository, Database, TemplateRepository
from errors import ConstraintError, DuplicateNameError, ParseError, ValidationError
from tools import NumberParser

logger = logging.getLogger(__name__)

FORMAT_NAME = "liftplan.templates"
FORMAT_VERSION = 1
FORMAT_TAG = f"{FORMAT_NAME}.v{FORMAT_VERSION}"
_TAG_PATTERN = re.compile(r"^liftplan\.templates\.v(\d+)$")

_TRUE_STRINGS = {"1", "true", "yes", "y", "on"}

# Ten years of weekly blocks; larger documents are rejected before any write.
MAX_IMPORT_WEEKS = 520


def _coerce_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    if isinstance(value, (int, float)):
        return value != 0
    return bool(value)


def _coerce_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return None
    return str(value)


class _Document(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SetRowDocument(_Document):
    n: Optional[int] = None
    reps: Optional[int] = None
    weight: Optional[float] = None

    @field_validator("n", mode="before")
    @classmethod
    def _set_number(cls, value: Any) -> Optional[int]:
        return NumberParser.parse_int(value, minimum=1)

    @field_validator("reps", mode="before")
    @classmethod
    def _reps(cls, value: Any) -> Optional[int]:
        return NumberParser.parse_int(value)

    @field_validator("weight", mode="before")
    @classmethod
    def _weight(cls, value: Any) -> Optional[float]:
        return NumberParser.parse_float(value)


class WeekDocument(_Document):
    week: int
    completed: bool = False

    @field_validator("week", mode="before")
    @classmethod
    def _week(cls, value: Any) -> Optional[int]:
        return NumberParser.parse_int(value, minimum=1)

    @field_validator("completed", mode="before")
    @classmethod
    def _completed(cls, value: Any) -> bool:
        return _coerce_flag(value)


class DayDocument(WeekDocument):
    day: int

    @field_validator("day", mode="before")
    @classmethod
    def _day(cls, value: Any) -> Optional[int]:
        return NumberParser.parse_int(value, minimum=1)


class ExerciseDocument(_Document):
    week: int
    day: int
    name: Optional[str] = None
    sets: Optional[int] = None
    reps: Optional[int] = None
    weight: Optional[float] = None
    notes: Optional[str] = None
    set_rows: List[SetRowDocument] = Field(
        default_factory=list, validation_alias=AliasChoices("setRows", "set_rows")
    )

    @field_validator("week", "day", "sets", "reps", mode="before")
    @classmethod
    def _integers(cls, value: Any, info: ValidationInfo) -> Optional[int]:
        minimum = 1 if info.field_name in ("week", "day") else None
        return NumberParser.parse_int(value, minimum=minimum)

    @field_validator("weight", mode="before")
    @classmethod
    def _weight(cls, value: Any) -> Optional[float]:
        return NumberParser.parse_float(value)

    @field_validator("name", "notes", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Optional[str]:
        return _coerce_text(value)

    @field_validator("set_rows", mode="before")
    @classmethod
    def _rows(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        return [row for row in value if isinstance(row, dict)]


def _placeable(row: Any, with_day: bool) -> bool:
    if not isinstance(row, dict):
        return False
    if NumberParser.parse_int(row.get("week"), minimum=1) is None:
        return False
    if with_day:
        day = NumberParser.parse_int(row.get("day"), minimum=1)
        return day is not None and day <= DAYS_PER_WEEK
    return True


class TemplateDocument(_Document):
    name: Optional[str] = None
    weeks_declared: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("weeksDeclared", "weeks")
    )
    weeks_table: List[WeekDocument] = Field(
        default_factory=list, validation_alias=AliasChoices("weeksTable", "weeks_table")
    )
    days: List[DayDocument] = Field(default_factory=list)
    exercises: List[ExerciseDocument] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: Any) -> Optional[str]:
        return _coerce_text(value)

    @field_validator("weeks_declared", mode="before")
    @classmethod
    def _declared(cls, value: Any) -> Optional[int]:
        return NumberParser.parse_int(value, minimum=0)

    @field_validator("weeks_table", "days", "exercises", mode="before")
    @classmethod
    def _drop_unplaceable(cls, value: Any, info: ValidationInfo) -> list:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError("expected a list")
        with_day = info.field_name != "weeks_table"
        kept = [row for row in value if _placeable(row, with_day)]
        if len(kept) != len(value):
            logger.warning(
                "skipping %d %s row(s) without a usable week/day",
                len(value) - len(kept),
                info.field_name,
            )
        return kept

    def effective_weeks(self) -> int:
        """Declared week count, raised to the highest week any row refers to."""
        referenced = [w.week for w in self.weeks_table]
        referenced += [d.week for d in self.days]
        referenced += [e.week for e in self.exercises]
        return max([self.weeks_declared or 0, *referenced])


class ExportDocument(_Document):
    type: Optional[str] = None
    exported_at: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("exportedAt", "exported_at")
    )
    templates: List[TemplateDocument] = Field(min_length=1)

    @field_validator("type", mode="before")
    @classmethod
    def _format_tag(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        match = _TAG_PATTERN.match(str(value))
        if match is None:
            raise ValueError(f"unsupported document type {value!r}")
        if int(match.group(1)) > FORMAT_VERSION:
            raise ValueError(f"document version {match.group(1)} is newer than supported")
        return str(value)


class TemplateTransferService:
    """Serialize templates to the export format and rebuild them from it."""

    def __init__(
        self,
        database: Database,
        template_repo: TemplateRepository | None = None,
    ) -> None:
        self.db = database
        self.templates = template_repo or TemplateRepository(database)

    async def export_templates(self, template_ids: Iterable[int] | None = None) -> dict:
        """Return the export envelope for ``template_ids`` (all when ``None``)."""
        exported: list[dict] = []
        async with self.db.transaction() as tx:
            if template_ids is None:
                rows = await tx.query("SELECT id, name, weeks FROM templates ORDER BY id;")
            else:
                rows = []
                for tid in dict.fromkeys(template_ids):
                    row = await tx.query_one(
                        "SELECT id, name, weeks FROM templates WHERE id = ?;", (tid,)
                    )
                    if row is None:
                        logger.warning("export: template %s not found, skipping", tid)
                        continue
                    rows.append(row)
            for row in rows:
                exported.append(await self._export_one(tx, row))
        logger.info("exported %d template(s)", len(exported))
        return {
            "type": FORMAT_TAG,
            "exportedAt": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "templates": exported,
        }

    @staticmethod
    async def _export_one(tx, template: dict) -> dict:
        tid = template["id"]
        weeks = await tx.query(
            "SELECT week, completed FROM weeks WHERE template_id = ? ORDER BY week;", (tid,)
        )
        days = await tx.query(
            "SELECT week, day, completed FROM days WHERE template_id = ? ORDER BY week, day;",
            (tid,),
        )
        exercises = await tx.query(
            """SELECT id, week, day, name, sets, reps, weight, notes
                 FROM exercises WHERE template_id = ?
                ORDER BY week, day, id;""",
            (tid,),
        )
        set_rows: dict[int, list] = {}
        for s in await tx.query(
            """SELECT s.exercise_id, s.set_number, s.reps, s.weight
                 FROM exercise_sets s
                 JOIN exercises e ON e.id = s.exercise_id
                WHERE e.template_id = ?
                ORDER BY s.exercise_id, s.set_number;""",
            (tid,),
        ):
            set_rows.setdefault(s["exercise_id"], []).append(
                {"n": s["set_number"], "reps": s["reps"], "weight": s["weight"]}
            )
        return {
            "name": template["name"],
            "weeksDeclared": template["weeks"],
            "weeksTable": [
                {"week": w["week"], "completed": bool(w["completed"])} for w in weeks
            ],
            "days": [
                {"week": d["week"], "day": d["day"], "completed": bool(d["completed"])}
                for d in days
            ],
            "exercises": [
                {
                    "week": e["week"],
                    "day": e["day"],
                    "name": e["name"],
                    "sets": e["sets"],
                    "reps": e["reps"],
                    "weight": e["weight"],
                    "notes": e["notes"],
                    "setRows": set_rows.get(e["id"], []),
                }
                for e in exercises
            ],
        }

    async def export_json(
        self, template_ids: Iterable[int] | None = None, indent: int | None = 2
    ) -> str:
        payload = await self.export_templates(template_ids)
        return json.dumps(payload, indent=indent, ensure_ascii=False)

    @staticmethod
    def parse_document(raw: str | bytes) -> ExportDocument:
        """Decode and validate an export document or raise :class:`ParseError`."""
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode("utf-8-sig")
            except UnicodeDecodeError as exc:
                raise ParseError("import file is not UTF-8 text") from exc
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as exc:
            raise ParseError(f"import file is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ParseError("import document must be a JSON object")
        if not isinstance(data.get("templates"), list) or not data["templates"]:
            raise ParseError("No templates in file")
        try:
            return ExportDocument.model_validate(data)
        except SchemaError as exc:
            raise ParseError(f"invalid export document: {exc}") from exc

    async def import_template(
        self, template: TemplateDocument | dict, new_name: str
    ) -> dict:
        """Create a new template named ``new_name`` from ``template``.

        Weeks 1..N (N = :meth:`TemplateDocument.effective_weeks`) and all
        seven days per week are seeded with the document's completion flags,
        then every exercise and its set rows are inserted. One transaction.
        """
        if not isinstance(template, TemplateDocument):
            try:
                template = TemplateDocument.model_validate(template)
            except SchemaError as exc:
                raise ParseError(f"invalid template: {exc}") from exc
        name = new_name.strip() if isinstance(new_name, str) else ""
        if not name:
            raise ValidationError("Template name is required.")
        if await self.templates.name_exists(name):
            raise DuplicateNameError()

        weeks = template.effective_weeks()
        if weeks > MAX_IMPORT_WEEKS:
            raise ParseError(
                f"template spans {weeks} weeks, more than the {MAX_IMPORT_WEEKS} supported"
            )
        week_flags = {w.week: w.completed for w in template.weeks_table}
        day_flags = {(d.week, d.day): d.completed for d in template.days}
        async with self.db.transaction() as tx:
            try:
                result = await tx.execute(
                    "INSERT INTO templates (name, weeks) VALUES (?, ?);",
                    (name, weeks or None),
                )
            except ConstraintError as exc:
                raise DuplicateNameError() from exc
            tid = result.lastrowid
            for week in range(1, weeks + 1):
                for query, params in BaseRepository.seed_week_statements(tid, week):
                    await tx.execute(query, params)
                if week_flags.get(week):
                    await tx.execute(
                        "UPDATE weeks SET completed = 1 WHERE template_id = ? AND week = ?;",
                        (tid, week),
                    )
            for (week, day), completed in day_flags.items():
                if completed:
                    await tx.execute(
                        "UPDATE days SET completed = 1 WHERE template_id = ? AND week = ? AND day = ?;",
                        (tid, week, day),
                    )
            for ex in template.exercises:
                inserted = await tx.execute(
                    "INSERT INTO exercises (template_id, week, day, name, sets, reps, weight, notes) VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
                    (tid, ex.week, ex.day, ex.name, ex.sets, ex.reps, ex.weight, ex.notes),
                )
                for number, row in self._number_set_rows(ex.set_rows):
                    await tx.execute(
                        "INSERT INTO exercise_sets (exercise_id, set_number, reps, weight) VALUES (?, ?, ?, ?);",
                        (inserted.lastrowid, number, row.reps, row.weight),
                    )
        logger.info("imported template %s as %s (%d weeks)", tid, name, weeks)
        return {"id": tid, "name": name, "weeks": weeks}

    @staticmethod
    def _number_set_rows(rows: List[SetRowDocument]):
        """Pair rows with set numbers: explicit ``n`` or position, next free on clash."""
        used: set[int] = set()
        for position, row in enumerate(rows, start=1):
            number = row.n or position
            if number in used:
                number = max(used) + 1
            used.add(number)
            yield number, row

    async def import_document(
        self, raw: str | bytes, names: List[str] | None = None
    ) -> List[dict]:
        """Parse ``raw`` and import each template, named from ``names`` or the file."""
        document = self.parse_document(raw)
        results = []
        for position, template in enumerate(document.templates):
            if names and position < len(names) and names[position]:
                name = names[position]
            else:
                name = template.name or "Imported Template"
            results.append(await self.import_template(template, name))
        return results
