import logging
from typing import List, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import APP_VERSION, YamlConfig
from db import (
    Database,
    DayRepository,
    ExerciseRepository,
    TemplateRepository,
    WeekRepository,
)
from errors import (
    DuplicateNameError,
    NotFoundError,
    ParseError,
    PlanError,
    StorageError,
    ValidationError,
)
from planner_service import PlannerService
from stats_service import StatisticsService
from transfer_service import TemplateTransferService

logger = logging.getLogger(__name__)


class SetRowPayload(BaseModel):
    reps: Optional[str | int] = None
    weight: Optional[str | float] = None


class ExerciseSetsPayload(BaseModel):
    name: str
    notes: Optional[str] = None
    set_rows: List[SetRowPayload] = []


class PlanAPI:
    """Provides REST endpoints for workout plan templates."""

    _STATUS_CODES = (
        (DuplicateNameError, 409),
        (ValidationError, 400),
        (ParseError, 400),
        (NotFoundError, 404),
        (StorageError, 500),
    )

    def __init__(
        self,
        db_path: str | None = None,
        yaml_path: str = "settings.yaml",
    ) -> None:
        self.settings = YamlConfig(yaml_path).settings()
        self.db_path = db_path or self.settings.db_path
        self.db = Database(self.db_path)
        self.templates = TemplateRepository(self.db)
        self.weeks = WeekRepository(self.db)
        self.days = DayRepository(self.db)
        self.exercises = ExerciseRepository(self.db)
        self.planner = PlannerService(self.db, self.templates)
        self.statistics = StatisticsService(self.db, self.templates, self.weeks)
        self.transfer = TemplateTransferService(self.db, self.templates)
        self.app = FastAPI(
            title=self.settings.api_title,
            version=APP_VERSION,
            description="REST API for multi-week workout plan templates",
        )
        self.app.add_exception_handler(PlanError, self._plan_error)
        self._setup_routes()

    async def _plan_error(self, request: Request, exc: PlanError) -> JSONResponse:
        status = next(
            (code for kind, code in self._STATUS_CODES if isinstance(exc, kind)), 500
        )
        if status == 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    def _setup_routes(self) -> None:
        @self.app.get("/health")
        async def health():
            await self.db.ensure_ready()
            return {"status": "ok", "ready": self.db.is_ready, "version": APP_VERSION}

        @self.app.post("/templates")
        async def create_template(name: str, weeks: str | None = None):
            tid = await self.templates.create(name, weeks)
            return {"id": tid}

        @self.app.get("/templates")
        async def list_templates():
            return await self.templates.fetch_all()

        @self.app.get("/templates/{template_id}")
        async def get_template(template_id: int):
            return await self.statistics.template_summary(template_id)

        @self.app.delete("/templates/{template_id}")
        async def delete_template(template_id: int):
            await self.templates.delete(template_id)
            return {"status": "deleted"}

        @self.app.get("/templates/{template_id}/weeks")
        async def list_weeks(template_id: int):
            weeks = await self.weeks.list_weeks(template_id)
            for w in weeks:
                w["progress"] = self.statistics.completion_ratio(w["days_completed"])
            return weeks

        @self.app.post("/templates/{template_id}/weeks/{week}")
        async def open_week(template_id: int, week: int):
            await self.weeks.ensure_week_days(template_id, week)
            return await self.weeks.get_week_status(template_id, week)

        @self.app.get("/templates/{template_id}/weeks/{week}")
        async def week_status(template_id: int, week: int):
            status = await self.weeks.get_week_status(template_id, week)
            status["volume_by_day"] = await self.statistics.week_volume(template_id, week)
            return status

        @self.app.put("/templates/{template_id}/weeks/{week}")
        async def set_week_status(template_id: int, week: int, completed: bool):
            await self.weeks.set_week_status(template_id, week, completed)
            return await self.weeks.get_week_status(template_id, week)

        @self.app.get("/templates/{template_id}/weeks/{week}/days/{day}")
        async def day_detail(template_id: int, week: int, day: int):
            exercises = await self.exercises.fetch_for_day(template_id, week, day)
            return {
                "completed": await self.days.get_day_completed(template_id, week, day),
                "exercises": exercises,
                "volume": await self.statistics.day_volume(template_id, week, day),
            }

        @self.app.put("/templates/{template_id}/weeks/{week}/days/{day}")
        async def set_day_completed(
            template_id: int, week: int, day: int, completed: bool
        ):
            return await self.days.set_day_completed(template_id, week, day, completed)

        @self.app.post("/templates/{template_id}/weeks/{week}/copy")
        async def copy_week(
            template_id: int,
            week: int,
            dest: List[int] = Query(default=[]),
            include_sets: bool = True,
        ):
            written = await self.planner.copy_week(template_id, week, dest, include_sets)
            return {"weeks": written}

        @self.app.get("/templates/{template_id}/volume")
        async def template_volume(template_id: int):
            await self.templates.fetch_detail(template_id)
            return {"volume": await self.statistics.template_volume(template_id)}

        @self.app.post("/exercises")
        async def add_exercise(
            template_id: int,
            week: int,
            day: int,
            name: str,
            sets: str | None = None,
            reps: str | None = None,
            weight: str | None = None,
            notes: str | None = None,
        ):
            ex_id = await self.exercises.add(
                template_id, week, day, name, sets, reps, weight, notes
            )
            return {"id": ex_id}

        @self.app.get("/exercises/{exercise_id}")
        async def get_exercise(exercise_id: int):
            return await self.exercises.fetch_detail(exercise_id)

        @self.app.put("/exercises/{exercise_id}")
        async def update_exercise(
            exercise_id: int,
            name: str,
            sets: str | None = None,
            reps: str | None = None,
            weight: str | None = None,
            notes: str | None = None,
        ):
            count = await self.exercises.update(
                exercise_id, name, sets, reps, weight, notes
            )
            if not count:
                raise HTTPException(status_code=404, detail="exercise not found")
            return {"status": "updated"}

        @self.app.put("/exercises/{exercise_id}/sets")
        async def replace_sets(exercise_id: int, payload: ExerciseSetsPayload):
            await self.exercises.update_with_sets(
                exercise_id,
                payload.name,
                payload.notes,
                [row.model_dump() for row in payload.set_rows],
            )
            return await self.exercises.fetch_detail(exercise_id)

        @self.app.delete("/exercises/{exercise_id}")
        async def delete_exercise(exercise_id: int):
            await self.exercises.delete(exercise_id)
            return {"status": "deleted"}

        @self.app.post("/exercises/delete")
        async def delete_exercises(ids: List[int] = Body(...)):
            return {"deleted": await self.exercises.delete_many(ids)}

        @self.app.get("/export")
        async def export_templates(ids: Optional[List[int]] = Query(default=None)):
            return await self.transfer.export_templates(ids)

        @self.app.post("/import")
        async def import_templates(
            request: Request, names: Optional[List[str]] = Query(default=None)
        ):
            raw = await request.body()
            return await self.transfer.import_document(raw, names)

        @self.app.post("/reset")
        async def reset(confirm: bool = False):
            if not confirm:
                raise HTTPException(status_code=400, detail="reset requires confirm=true")
            await self.templates.reset_all()
            return {"status": "reset"}
