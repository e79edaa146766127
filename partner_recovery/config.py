"""
Partner Recovery — Configuration via environment variables.
"""

from datetime import timedelta

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All settings read from env / .env file."""

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./partner_recovery.db",
        description="Async SQLAlchemy DB URL",
    )

    # Retry / backoff
    max_retries: int = Field(default=3, description="Failed attempts before escalation")
    backoff_base_minutes: float = Field(
        default=1.0, description="Backoff after attempt n is base * 2^(n-1) minutes"
    )

    # Sales agents get a notice window before their records move
    agent_grace_hours: float = Field(default=24)

    # Batch executor
    batch_chunk_size: int = Field(default=100, description="Owned records per flush")

    # Transaction timeouts (managers cascade, so they get longer)
    agent_timeout_seconds: float = Field(default=30)
    manager_timeout_seconds: float = Field(default=60)

    # In-process scheduler; 0 disables the periodic pass
    recovery_interval_seconds: int = Field(default=3600)

    # Synthesized HQ account
    hq_admin_email: str = Field(default="hq@partners.local")
    hq_admin_name: str = Field(default="HQ Administrator")
    hq_display_name: str = Field(default="Headquarters")

    # Telegram (escalation channel)
    telegram_bot_token: str = Field(default="")
    telegram_chat_id: str = Field(default="")
    notify_on_success: bool = Field(default=False)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()


class RecoveryConfig(BaseModel):
    """Engine knobs, decoupled from the environment so tests can pin them."""

    max_retries: int = 3
    backoff_base_minutes: float = 1.0
    agent_grace: timedelta = timedelta(days=1)
    chunk_size: int = Field(default=100, ge=1)
    agent_timeout: float = 30.0
    manager_timeout: float = 60.0
    notify_on_success: bool = False

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, s: Settings | None = None) -> "RecoveryConfig":
        s = s or settings
        return cls(
            max_retries=s.max_retries,
            backoff_base_minutes=s.backoff_base_minutes,
            agent_grace=timedelta(hours=s.agent_grace_hours),
            chunk_size=s.batch_chunk_size,
            agent_timeout=s.agent_timeout_seconds,
            manager_timeout=s.manager_timeout_seconds,
            notify_on_success=s.notify_on_success,
        )

    def backoff(self, attempt_count: int) -> timedelta:
        """Wait required after the ``attempt_count``-th failure (1, 2, 4 ... minutes)."""
        if attempt_count <= 0:
            return timedelta(0)
        return timedelta(minutes=self.backoff_base_minutes * 2 ** (attempt_count - 1))
