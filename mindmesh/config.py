"""Configuration for MindMesh."""

import json
import logging
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def get_config_dir() -> Path:
    """Get the configuration directory."""
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "mindmesh"


def get_data_dir() -> Path:
    """Get the application data directory."""
    data_dir = Path.home() / ".local" / "share" / "mindmesh"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


@dataclass
class Settings:
    """Client settings."""
    server_url: str = "http://localhost:3000"
    auth_token: Optional[str] = None
    offline: bool = False
    update_debounce_ms: int = 300
    save_debounce_ms: int = 1000
    zoom_min: float = 0.5
    zoom_max: float = 2.0
    zoom_step: float = 0.1
    child_step_y: float = 100.0
    child_spread_y: float = 60.0
    sibling_step_y: float = 60.0
    request_timeout: float = 10.0

    def to_json(self) -> str:
        data = asdict(self)
        # The credential is supplied per run, never written back.
        data.pop("auth_token")
        return json.dumps(data, indent=2)

    @classmethod
    def from_json(cls, data: Optional[str]) -> "Settings":
        if not data:
            return cls()
        try:
            d = json.loads(data)
            # Filter to only known fields to handle schema evolution
            known = {f.name for f in fields(cls)}
            return cls(**{k: v for k, v in d.items() if k in known})
        except (json.JSONDecodeError, TypeError, AttributeError) as exc:
            logger.warning("Ignoring malformed settings: %s", exc)
            return cls()


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from disk, then apply environment overrides."""
    path = path or get_config_path()
    text = None
    if path.is_file():
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
    settings = Settings.from_json(text)

    env = os.environ
    if env.get("MINDMESH_SERVER_URL"):
        settings.server_url = env["MINDMESH_SERVER_URL"]
    if env.get("MINDMESH_TOKEN"):
        settings.auth_token = env["MINDMESH_TOKEN"]
    if env.get("MINDMESH_OFFLINE") == "1":
        settings.offline = True
    return settings


def save_settings(settings: Settings, path: Optional[Path] = None):
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(settings.to_json(), encoding="utf-8")
