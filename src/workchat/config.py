"""
Runtime configuration for workchat.

Values come from environment variables (optionally loaded from a ``.env``
file in the project directory) and are exposed as the module-level
``CONFIG`` object.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

PROJECT_DIR = Path(__file__).resolve().parent.parent.parent

load_dotenv(PROJECT_DIR / ".env")

DEFAULT_PORT = "3000"
DEFAULT_API_PATH = "/api/chat"
RUN_ID_HEADER = "x-workflow-run-id"
END_COMMAND = "/done"


def get_data_dir() -> Path:
    """Directory holding durable client state."""
    return Path(os.getenv("WORKCHAT_DATA_DIR", str(Path.home() / ".workchat")))


def get_server_url() -> str:
    """Get the server URL from environment or default."""
    port = os.getenv("WORKCHAT_PORT") or DEFAULT_PORT
    host = os.getenv("WORKCHAT_HOST", "localhost")
    return os.getenv("WORKCHAT_SERVER_URL", f"http://{host}:{port}").rstrip("/")


class Config(BaseModel):
    """Client configuration."""

    server_url: str = Field(default_factory=get_server_url)
    api_path: str = DEFAULT_API_PATH
    state_file: Path = Field(default_factory=lambda: get_data_dir() / "session.json")
    max_consecutive_errors: int = 5
    timeout: float = 60.0
    log_level: str = "WARNING"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Config":
        """Build a Config from the current environment."""
        values = {
            "server_url": get_server_url(),
            "api_path": os.getenv("WORKCHAT_API_PATH", DEFAULT_API_PATH),
            "state_file": Path(
                os.getenv("WORKCHAT_STATE_FILE", str(get_data_dir() / "session.json"))
            ),
            "log_level": os.getenv("LOG_LEVEL", "WARNING"),
            "log_file": os.getenv("LOG_FILE"),
        }
        if os.getenv("WORKCHAT_MAX_CONSECUTIVE_ERRORS"):
            values["max_consecutive_errors"] = int(
                os.environ["WORKCHAT_MAX_CONSECUTIVE_ERRORS"]
            )
        if os.getenv("WORKCHAT_TIMEOUT"):
            values["timeout"] = float(os.environ["WORKCHAT_TIMEOUT"])
        return cls(**values)

    def reload(self) -> None:
        """Re-read the environment into this instance."""
        fresh = Config.from_env()
        for name in Config.model_fields:
            setattr(self, name, getattr(fresh, name))


CONFIG = Config.from_env()
