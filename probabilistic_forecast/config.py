from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field, field_validator


DAYS_IN_WEEK = 7


class ConfigError(ValueError):
    pass


def _expand(path: str) -> Path:
    return Path(os.path.expanduser(path)).resolve()


def _read_toml(path: Path) -> dict[str, Any]:
    """Read TOML into a dict, supporting Python 3.10+.

    Uses tomllib when available, falls back to tomli.
    """
    data = path.read_bytes()
    try:
        import tomllib  # type: ignore[attr-defined]

        return tomllib.loads(data.decode("utf-8"))
    except ModuleNotFoundError:
        import tomli  # type: ignore[import-not-found]

        return tomli.loads(data.decode("utf-8"))


def _split_csv(value: str) -> list[str]:
    return [p.strip() for p in value.split(",") if p.strip()]


class JiraConfig(BaseModel):
    host: str = Field(default="", description="Jira host name, e.g. example.atlassian.net")
    port: int | None = Field(default=None)
    protocol: str = Field(default="https")
    username: str = Field(default="")
    token_env_var: str = Field(default="JIRA_API_TOKEN")
    project_ids: list[str] = Field(
        default_factory=list,
        description="Projects used to measure team performance. Empty: infer from backlog keys.",
    )
    bug_issue_type: str = Field(default="Fault")
    forecast_label: str = Field(default="forecast")
    max_results: int = Field(default=1000, ge=1)

    @property
    def base_url(self) -> str:
        port = f":{self.port}" if self.port else ""
        return f"{self.protocol}://{self.host}{port}"

    def token(self, environ: Mapping[str, str] | None = None) -> str:
        env = os.environ if environ is None else environ
        value = env.get(self.token_env_var, "")
        if not value:
            raise ConfigError(f"Missing Jira API token: set {self.token_env_var}")
        return value

    def require_connection(self) -> None:
        missing = [name for name in ("host", "username") if not getattr(self, name)]
        if missing:
            raise ConfigError(f"Missing Jira configuration: {', '.join(missing)}")


class ForecastConfig(BaseModel):
    num_weeks_of_history: int = Field(default=10, ge=1)
    confidence_percentage_threshold: float = Field(default=80.0, ge=0.0, le=100.0)
    num_simulations: int = Field(default=1000, ge=1, le=100_000)
    time_length: int = Field(default=2, ge=1)
    time_unit: Literal["weeks", "days"] = Field(default="weeks")
    ticket_target: int = Field(default=60, ge=1, description="Used when no target ticket is given.")
    bug_ratio: float | None = Field(default=None, description="Override for '1 bug per N tickets'.")
    discovery_ratio: float | None = Field(
        default=None,
        description="Override for '1 new ticket per N resolved'.",
    )
    rng_seed: int | None = Field(default=None)

    @field_validator("bug_ratio", "discovery_ratio")
    @classmethod
    def _positive_ratio(cls, v: float | None) -> float | None:
        if v is not None and not v > 0:
            raise ValueError("ratio overrides must be positive")
        return v

    @property
    def duration_in_days(self) -> int:
        if self.time_unit == "days":
            return self.time_length
        return self.time_length * DAYS_IN_WEEK

    @property
    def num_days_of_history(self) -> int:
        return self.num_weeks_of_history * DAYS_IN_WEEK


class OutputConfig(BaseModel):
    reports_dir: str = Field(default="", description="Archive forecasts as JSON here when set.")

    def resolve_reports_dir(self) -> Path | None:
        return _expand(self.reports_dir) if self.reports_dir else None


# Environment variable -> (section, field)
_ENV_FIELDS: dict[str, tuple[str, str]] = {
    "JIRA_HOST": ("jira", "host"),
    "JIRA_PORT": ("jira", "port"),
    "JIRA_PROTOCOL": ("jira", "protocol"),
    "JIRA_USERNAME": ("jira", "username"),
    "NUM_WEEKS_OF_HISTORY": ("forecast", "num_weeks_of_history"),
    "CONFIDENCE_PERCENTAGE_THRESHOLD": ("forecast", "confidence_percentage_threshold"),
    "NUM_SIMULATIONS": ("forecast", "num_simulations"),
    "TIME_LENGTH": ("forecast", "time_length"),
    "TIME_UNIT": ("forecast", "time_unit"),
    "TICKET_TARGET": ("forecast", "ticket_target"),
    "BUG_RATIO": ("forecast", "bug_ratio"),
    "DISCOVERY_RATIO": ("forecast", "discovery_ratio"),
}


class AppConfig(BaseModel):
    jira: JiraConfig = Field(default_factory=JiraConfig)
    forecast: ForecastConfig = Field(default_factory=ForecastConfig)
    outputs: OutputConfig = Field(default_factory=OutputConfig)

    @classmethod
    def load(cls, path: Path) -> "AppConfig":
        raw = _read_toml(path)
        return cls.model_validate(raw)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        base: "AppConfig | None" = None,
    ) -> "AppConfig":
        """Overlay environment variables on `base` (or the defaults)."""
        env = os.environ if environ is None else environ
        raw = (base or cls()).model_dump()

        for name, (section, key) in _ENV_FIELDS.items():
            value = env.get(name, "").strip()
            if value:
                raw[section][key] = value

        projects = _split_csv(env.get("JIRA_PROJECT_ID", ""))
        if projects:
            raw["jira"]["project_ids"] = projects

        return cls.model_validate(raw)

    @classmethod
    def resolve(cls, path: Path | None, environ: Mapping[str, str] | None = None) -> "AppConfig":
        base = cls.load(path) if path is not None else None
        return cls.from_env(environ, base=base)
