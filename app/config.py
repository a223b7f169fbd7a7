"""HYPOLAB — Central Configuration via Pydantic Settings."""

import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database ──
    database_url: str = ""
    videos_table: str = "videos"
    migrate_on_startup: bool = True

    # ── App ──
    log_level: str = "INFO"

    # ── A/B comparison defaults ──
    default_primary_metric: str = "ctr"
    default_method: str = "hybrid"  # frequentist | bayesian | hybrid
    default_alpha: float = 0.05
    default_mde: float = 0.1
    default_min_exposure: float = 1000
    bayes_samples: int = 3000  # Monte-Carlo draws for P(B>A)

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/hypolab.db"
        return "sqlite:///./hypolab.db"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
