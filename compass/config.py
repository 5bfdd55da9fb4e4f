"""Application settings.

All values come from environment variables (``COMPASS_`` prefix) or a local
``.env`` file, so the same code runs against a throwaway SQLite file in
development and a managed database in production.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Core settings.

    - ``database_url``: SQLAlchemy URL, local SQLite by default.
    - ``default_items_per_form``: stimulus-pool form length when no rule says otherwise.
    - ``default_forms_per_level``: forms generated per level when section I is silent.
    - ``sampler_avoid_boundary_repeats``: forbid the same token on both sides of
      a shuffle-cycle boundary.
    """

    database_url: str = Field(
        default="sqlite:///./storage/compass.db", description="SQLAlchemy database URL"
    )
    service_name: str = Field(default="reading-compass", description="Name used in log lines")
    log_level: str = Field(default="INFO", description="Root log level")

    default_items_per_form: int = Field(default=100, ge=1)
    default_forms_per_level: int = Field(default=2, ge=1)
    default_fluency_seconds: float = Field(
        default=60.0, gt=0, description="Timing window assumed when responses carry no elapsed time"
    )
    sampler_avoid_boundary_repeats: bool = Field(default=False)

    model_config = {
        "env_prefix": "COMPASS_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached global settings instance."""

    return Settings()
