from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic.aliases import AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_DIR = Path(__file__).resolve().parents[1]


DEFAULT_SCHOOL_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=BACKEND_DIR / ".env", env_file_encoding="utf-8", extra="ignore")

    # Runtime
    environment: str = Field(default="development", validation_alias=AliasChoices("environment", "ENVIRONMENT"))
    frontend_origin: str = Field(
        default="http://localhost:5173",
        validation_alias=AliasChoices("frontend_origin", "FRONTEND_ORIGIN"),
    )

    # Solver
    solver_time_limit_seconds: float = Field(
        default=5.0,
        gt=0,
        validation_alias=AliasChoices("solver_time_limit_seconds", "SOLVER_TIME_LIMIT_SECONDS"),
    )
    # Upper bound applied to request-supplied budgets when ENVIRONMENT=production.
    solver_production_time_cap_seconds: float = Field(
        default=10.0,
        gt=0,
        validation_alias=AliasChoices("solver_production_time_cap_seconds", "SOLVER_PRODUCTION_TIME_CAP_SECONDS"),
    )
    solver_shuffle_domains: bool = Field(
        default=True,
        validation_alias=AliasChoices("solver_shuffle_domains", "SOLVER_SHUFFLE_DOMAINS"),
    )
    solver_seed: int | None = Field(
        default=None,
        validation_alias=AliasChoices("solver_seed", "SOLVER_SEED"),
    )

    # Level for the solver/service loggers (DEBUG, INFO, WARNING...). Unset follows the app level.
    solver_log_level: str | None = Field(
        default=None,
        validation_alias=AliasChoices("solver_log_level", "SOLVER_LOG_LEVEL"),
    )

    # Week grid. Labels are normalized by the input builder, so any supported alias works.
    school_days: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SCHOOL_DAYS),
        validation_alias=AliasChoices("school_days", "SCHOOL_DAYS"),
    )

    # When true, /solve refuses to search inputs with CRITICAL viability problems unless forced.
    viability_block_on_critical: bool = Field(
        default=True,
        validation_alias=AliasChoices("viability_block_on_critical", "VIABILITY_BLOCK_ON_CRITICAL"),
    )

    @field_validator("frontend_origin")
    @classmethod
    def _normalize_frontend_origin(cls, v: str) -> str:
        # Starlette CORS expects the Origin to match exactly (no trailing slash).
        return v.strip().rstrip("/")

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, v: str) -> str:
        return (v or "development").strip().lower()

    @field_validator("solver_log_level")
    @classmethod
    def _normalize_solver_log_level(cls, v: str | None) -> str | None:
        v = (v or "").strip().upper()
        return v or None

    @field_validator("school_days")
    @classmethod
    def _normalize_school_days(cls, v: list[str]) -> list[str]:
        days = [d.strip() for d in (v or []) if d and d.strip()]
        if not days:
            raise ValueError("SCHOOL_DAYS must list at least one weekday")
        return days

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def effective_time_limit(self, requested: float | None) -> float:
        limit = float(requested) if requested is not None else float(self.solver_time_limit_seconds)
        if self.is_production:
            limit = min(limit, float(self.solver_production_time_cap_seconds))
        return limit


settings = Settings()
