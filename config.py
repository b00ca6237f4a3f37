import os
import yaml

from settings_schema import SettingsSchema, validate_settings

APP_VERSION = "1.0.0"
DB_ENV_VAR = "LIFTPLAN_DB"


class YamlConfig:
    """Load settings from a YAML file."""

    def __init__(self, path: str = "settings.yaml") -> None:
        self.path = path

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping")
        return data

    def settings(self) -> SettingsSchema:
        """Validated settings; ``LIFTPLAN_DB`` overrides the database path."""
        data = self.load()
        env_db = os.environ.get(DB_ENV_VAR)
        if env_db:
            data["db_path"] = env_db
        return validate_settings(data)
