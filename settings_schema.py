from typing import Optional

from pydantic import BaseModel, ValidationError, field_validator

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class SettingsSchema(BaseModel):
    db_path: str = "workout.db"
    log_level: str = "INFO"
    export_indent: Optional[int] = 2
    api_title: str = "Plan API"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(LOG_LEVELS)}")
        return level

    @field_validator("export_indent")
    @classmethod
    def _indent(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise ValueError("export_indent must be non-negative")
        return value


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
