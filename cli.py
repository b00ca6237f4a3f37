import argparse
import asyncio
import logging
import shutil
from typing import Optional

from config import APP_VERSION, YamlConfig
from db import Database, ExerciseRepository, TemplateRepository, WeekRepository
from migrate import migrate
from planner_service import PlannerService
from transfer_service import TemplateTransferService

logger = logging.getLogger(__name__)


async def export_templates(
    db_path: str, out_path: str, ids: Optional[list[int]] = None, indent: int | None = 2
) -> int:
    """Write the export document for ``ids`` (all when empty) to ``out_path``."""
    transfer = TemplateTransferService(Database(db_path))
    data = await transfer.export_json(ids or None, indent=indent)
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(data)
    logger.info("wrote %s", out_path)
    return len(data)


async def import_templates(
    db_path: str, in_path: str, names: Optional[list[str]] = None
) -> list[dict]:
    with open(in_path, "rb") as f:
        raw = f.read()
    transfer = TemplateTransferService(Database(db_path))
    return await transfer.import_document(raw, names)


async def list_templates(db_path: str) -> list[dict]:
    database = Database(db_path)
    templates = TemplateRepository(database)
    weeks = WeekRepository(database)
    rows = await templates.fetch_all()
    for row in rows:
        listing = await weeks.list_weeks(row["id"])
        row["weeks_completed"] = sum(1 for w in listing if w["week_completed"])
        row["weeks_total"] = len(listing)
    return rows


async def copy_week(
    db_path: str, template_id: int, source: int, dest: list[int], include_sets: bool = True
) -> list[int]:
    planner = PlannerService(Database(db_path))
    return await planner.copy_week(template_id, source, dest, include_sets)


async def reset_db(db_path: str) -> None:
    await TemplateRepository(Database(db_path)).reset_all()


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


async def demo_data(db_path: str) -> Optional[int]:
    """Populate the database with a demo template if it has none."""
    database = Database(db_path)
    templates = TemplateRepository(database)
    if await templates.fetch_all():
        print("Database already contains templates")
        return None
    tid = await templates.create("Demo 4-week strength", 4)
    weeks = WeekRepository(database)
    exercises = ExerciseRepository(database)
    await weeks.ensure_week_days(tid, 1)
    squat = await exercises.add(tid, 1, 1, "Back Squat")
    await exercises.update_with_sets(
        squat, "Back Squat", None, [(5, 100.0), (5, 100.0), (5, 100.0)]
    )
    bench = await exercises.add(tid, 1, 3, "Bench Press")
    await exercises.update_with_sets(bench, "Bench Press", "pause reps", [(5, 80.0)] * 3)
    await exercises.add(tid, 1, 5, "Deadlift", sets=1, reps=5, weight=140)
    await PlannerService(database, templates).copy_week(tid, 1, [2, 3, 4])
    print("Demo data inserted")
    return tid


def main() -> None:
    parser = argparse.ArgumentParser(description="Workout plan utility commands")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    parser.add_argument("--config", default="settings.yaml")
    parser.add_argument("--db", default=None, help="database path (overrides config)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export")
    exp.add_argument("--out", default="templates.json")
    exp.add_argument("--ids", type=int, nargs="*", default=[])

    imp = sub.add_parser("import")
    imp.add_argument("--file", required=True)
    imp.add_argument("--name", dest="names", action="append")

    sub.add_parser("list")

    cpy = sub.add_parser("copy-week")
    cpy.add_argument("--template", type=int, required=True)
    cpy.add_argument("--source", type=int, required=True)
    cpy.add_argument("--dest", type=int, nargs="+", required=True)
    cpy.add_argument("--names-only", action="store_true")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")

    rsd = sub.add_parser("reset")
    rsd.add_argument("--yes", action="store_true")

    sub.add_parser("demo")
    sub.add_parser("migrate")

    args = parser.parse_args()
    settings = YamlConfig(args.config).settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    db_path = args.db or settings.db_path

    if args.cmd == "export":
        asyncio.run(export_templates(db_path, args.out, args.ids, settings.export_indent))
    elif args.cmd == "import":
        for result in asyncio.run(import_templates(db_path, args.file, args.names)):
            print(f"Imported {result['name']} (id {result['id']}, {result['weeks']} weeks)")
    elif args.cmd == "list":
        for row in asyncio.run(list_templates(db_path)):
            print(
                f"{row['id']:4} {row['name']} "
                f"[{row['weeks_completed']}/{row['weeks_total']} weeks done]"
            )
    elif args.cmd == "copy-week":
        written = asyncio.run(
            copy_week(db_path, args.template, args.source, args.dest, not args.names_only)
        )
        print(f"Copied week {args.source} to {written}")
    elif args.cmd == "backup":
        backup_db(db_path, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, db_path)
    elif args.cmd == "reset":
        if not args.yes:
            parser.error("reset drops every table; pass --yes to confirm")
        asyncio.run(reset_db(db_path))
    elif args.cmd == "demo":
        asyncio.run(demo_data(db_path))
    elif args.cmd == "migrate":
        migrate(db_path)


if __name__ == "__main__":
    main()
