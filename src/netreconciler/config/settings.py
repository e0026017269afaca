"""
Reconciler settings using Pydantic.

Provides environment-based configuration loading with NETRECONCILER_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings

DEFAULT_TRANSIENT_SIGNATURES = [
    "is not a valid IP for the specified subnet",
    "(neutron)IP address",
    "address not valid for subnet",
]


class ReconcilerSettings(BaseSettings):
    """Reconciler settings."""

    # Control-plane API
    api_base_url: str = "http://localhost:8080/vps/api/v1"
    api_token: str | None = None
    project_id: str | None = None

    # HTTP client settings
    http_timeout: float = 30.0
    http_max_retries: int = 3
    http_retry_backoff_factor: float = 2.0

    # Status waiter
    poll_interval: float = 5.0
    status_timeout: float = 600.0
    active_status: str = "ACTIVE"

    # Attachment creation retry
    create_attempts: int = 3
    create_backoff: float = 2.0
    candidate_offsets: list[int] = [10, 20, 30, 40, 50]
    transient_signatures: list[str] = []

    # Rules
    rule_strategy: str = "surgical"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "NETRECONCILER_"

    @property
    def all_transient_signatures(self) -> list[str]:
        return DEFAULT_TRANSIENT_SIGNATURES + [
            sig for sig in self.transient_signatures if sig not in DEFAULT_TRANSIENT_SIGNATURES
        ]


@lru_cache
def get_settings() -> ReconcilerSettings:
    """Get cached settings instance."""
    return ReconcilerSettings()
