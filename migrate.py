import asyncio
import sys

from db import Database, MigrationOutcome


async def run_migrations(db_path: str = "workout.db") -> list[MigrationOutcome]:
    """Open ``db_path``, bring its schema up to date and return step outcomes."""
    database = Database(db_path)
    await database.ensure_ready()
    return database.migration_log


def migrate(db_path: str = "workout.db") -> list[MigrationOutcome]:
    outcomes = asyncio.run(run_migrations(db_path))
    for outcome in outcomes:
        line = f"{outcome.status:8} {outcome.name}"
        if outcome.error:
            line += f" ({outcome.error})"
        print(line)
    return outcomes


if __name__ == "__main__":
    path = sys.argv[1] if len(sys.argv) > 1 else "workout.db"
    migrate(path)
