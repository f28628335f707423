from __future__ import annotations

from pathlib import Path
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings
import os


class Settings(BaseSettings):
    app_name: str = "Meeting Manager"

    # Base data dir (e.g., ~/.meeting_manager)
    home_dir: Path = Field(default_factory=lambda: Path(os.getenv("MM_HOME", str(Path.home() / ".meeting_manager"))))
    data_dir: Path = Field(default_factory=lambda: Path(os.getenv("MM_HOME", str(Path.home() / ".meeting_manager"))) / "data")
    logs_dir: Path = Field(default_factory=lambda: Path(os.getenv("MM_HOME", str(Path.home() / ".meeting_manager"))) / "logs")

    # Any SQLAlchemy URL; falls back to a SQLite file inside data_dir
    database_url: Optional[str] = None

    # Recurring-meeting scheduler
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = Field(default=300, ge=1)
    scheduler_timezone: str = "Asia/Kolkata"
    scheduler_run_on_startup: bool = False

    class Config:
        env_prefix = "MM_"
        case_sensitive = False

    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.data_dir / 'meeting_manager.db'}"

    def ensure_dirs(self) -> None:
        for d in [self.home_dir, self.data_dir, self.logs_dir]:
            d.mkdir(parents=True, exist_ok=True)
