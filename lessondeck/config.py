import os
from typing import Any, ClassVar, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv(".env")


class Settings(BaseModel):
    _instance: ClassVar[Optional["Settings"]] = None

    # Peer connection
    ws_url: str = Field(
        default_factory=lambda: os.getenv("LESSONDECK_WS_URL", ""),
        description="WebSocket URL of the generation backend",
    )
    user_id: str = Field(default_factory=lambda: os.getenv("LESSONDECK_USER_ID", "user-123"))
    channel_name: str = Field(
        default_factory=lambda: os.getenv("LESSONDECK_CHANNEL", "powerpoint-taskpane")
    )

    # Reconnection policy
    max_reconnect_attempts: int = Field(
        default_factory=lambda: int(os.getenv("LESSONDECK_MAX_RECONNECT", "3")),
        description="Reconnect attempts before reporting the connection as lost",
    )
    reconnect_delay_ms: int = Field(
        default_factory=lambda: int(os.getenv("LESSONDECK_RECONNECT_DELAY_MS", "2000"))
    )
    reconnect_max_delay_ms: int = Field(
        default_factory=lambda: int(os.getenv("LESSONDECK_RECONNECT_MAX_DELAY_MS", "30000"))
    )
    backoff: str = Field(
        default_factory=lambda: os.getenv("LESSONDECK_BACKOFF", "linear"),
        description="linear or exponential",
    )
    initial_connect_delay_s: float = Field(default=0.5, description="Delay before the first connect")

    # Workflow
    default_category: Optional[str] = Field(
        default_factory=lambda: os.getenv("LESSONDECK_DEFAULT_CATEGORY", "vocabulary") or None,
        description="Category pre-selected on start and after a new conversation",
    )

    # Local state
    state_dir: str = Field(
        default_factory=lambda: os.getenv(
            "LESSONDECK_STATE_DIR", os.path.join(os.path.expanduser("~"), ".lessondeck")
        )
    )
    settings_file: str = Field(default="settings.json")

    def __new__(cls, *args: Any, **kwargs: Any) -> Any:
        if not hasattr(cls, "_instance") or cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        if hasattr(self, "_initialized"):
            return
        super().__init__(*args, **kwargs)
        self._initialized = True

    @property
    def settings_path(self) -> str:
        return os.path.join(self.state_dir, self.settings_file)


# Create singleton instance
settings = Settings()
