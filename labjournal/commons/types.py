import os
import sys
from typing import List, Literal

import yaml
from pydantic import BaseModel, Field


class PathsCfg(BaseModel):
    data_file: str = "data/blood_tests.json"
    logs_root: str = "logs"
    inbox: str = "inbox"
    archive: str = "archive"
    error: str = "error"


class ParserCfg(BaseModel):
    strict_dates: bool = False
    ignored_keys: List[str] = Field(default_factory=lambda: ["IGNORE"])


class ImportsCfg(BaseModel):
    default_policy: Literal["replace", "skip"] = "skip"
    filename_glob: str = "*.json"


class Settings(BaseModel):
    paths: PathsCfg = Field(default_factory=PathsCfg)
    parser: ParserCfg = Field(default_factory=ParserCfg)
    imports: ImportsCfg = Field(default_factory=ImportsCfg)
    log_level: str = "INFO"
    log_retention: str = "14 days"


def resource_path(relative_path: str) -> str:
    """Absolute path of a bundled resource, both frozen (PyInstaller) and in development."""
    base_path = getattr(sys, "_MEIPASS", os.path.abspath("."))
    return os.path.join(base_path, relative_path)


def load_cfg(path: str = "configs/settings.yaml") -> Settings:
    config_path = resource_path(path)
    if not os.path.exists(config_path):
        settings = Settings()
    else:
        with open(config_path, "r", encoding="utf-8") as f:
            settings = Settings.model_validate(yaml.safe_load(f) or {})
    level = os.getenv("LOG_LEVEL")
    if level:
        settings.log_level = level
    return settings
