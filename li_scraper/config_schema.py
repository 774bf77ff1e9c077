from __future__ import annotations

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_ACTOR_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+[/~][A-Za-z0-9_.-]+$")


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


def _validate_non_empty_path(value: str) -> str:
    path = (value or "").strip()
    if not path:
        raise ValueError("must be a non-empty path")
    return path


PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeFloat = Annotated[float, Field(ge=0.0)]


class ApifyConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    token_env: str = "APIFY_TOKEN"
    profile_posts_actor: str = "harvestapi/linkedin-profile-posts"
    include_reposts: bool = False
    clean_items: bool = True

    @field_validator("token_env")
    @classmethod
    def _token_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)

    @field_validator("profile_posts_actor")
    @classmethod
    def _actor_must_be_valid(cls, v: str) -> str:
        actor = (v or "").strip()
        if not _ACTOR_ID_RE.fullmatch(actor):
            raise ValueError("must look like 'username/actor-name'")
        return actor


class ScrapeConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    default_max_posts: PositiveInt = 50
    poll_interval_seconds: NonNegativeFloat = 5.0
    max_poll_attempts: PositiveInt = 60
    dedupe_by_external_id: bool = False
    # Live runs refresh their token after every poll; a token idle for longer
    # than this is treated as abandoned by a crashed process.
    stale_run_after_seconds: PositiveInt = 900

    @model_validator(mode="after")
    def _stale_window_must_cover_polling(self) -> "ScrapeConfig":
        if self.stale_run_after_seconds <= self.poll_interval_seconds * self.max_poll_attempts:
            raise ValueError(
                "stale_run_after_seconds must exceed poll_interval_seconds * max_poll_attempts"
            )
        return self


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    database_path: str = "state.sqlite"

    @field_validator("database_path")
    @classmethod
    def _database_path_must_be_set(cls, v: str) -> str:
        return _validate_non_empty_path(v)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    run_log_path: str = "run.log"

    @field_validator("run_log_path")
    @classmethod
    def _run_log_path_must_be_set(cls, v: str) -> str:
        return _validate_non_empty_path(v)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    apify: ApifyConfig = Field(default_factory=ApifyConfig)
    scrape: ScrapeConfig = Field(default_factory=ScrapeConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
