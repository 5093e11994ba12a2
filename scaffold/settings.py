"""Configuration loading for the scaffold command-line tools."""
from __future__ import annotations

import os
import tempfile
import tomllib
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from scaffold.fetch.descriptor import DEFAULT_BASE_DIR_NAME, TemplateDescriptor, build_descriptor

ENV_REMOTE_URL = "SCAFFOLD_REMOTE_URL"
ENV_CACHE_DIR = "SCAFFOLD_CACHE_DIR"
ENV_MAX_AGE = "SCAFFOLD_MAX_AGE_SECONDS"


class FetchSettings(BaseModel):
    remote_url: str = Field(min_length=1)
    user_agent: str = "txtar-scaffold"
    timeout_seconds: float = Field(default=30.0, gt=0)


class CacheSettings(BaseModel):
    base_dir: Optional[Path] = None
    max_age_seconds: int = Field(default=0, ge=0)
    raw_filename: Optional[str] = None
    rendered_filename: Optional[str] = None

    @field_validator("base_dir", mode="before")
    @classmethod
    def _empty_means_default(cls, value: Any) -> Any:
        if value in ("", None):
            return None
        return value

    @property
    def max_age(self) -> timedelta:
        return timedelta(seconds=self.max_age_seconds)

    def resolved_base_dir(self) -> Path:
        """Return the configured base dir or ``<tempdir>/scaffold``."""
        if self.base_dir is not None:
            return self.base_dir.expanduser()
        return Path(tempfile.gettempdir()) / DEFAULT_BASE_DIR_NAME


class Settings(BaseModel):
    """Validated contents of ``settings.toml``."""

    fetch: FetchSettings
    cache: CacheSettings = Field(default_factory=CacheSettings)

    def descriptor(self) -> TemplateDescriptor:
        return build_descriptor(
            self.fetch.remote_url,
            self.cache.resolved_base_dir(),
            raw_filename=self.cache.raw_filename,
            rendered_filename=self.cache.rendered_filename,
        )


def _apply_environment(raw: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    fetch = dict(raw.get("fetch", {}))
    cache = dict(raw.get("cache", {}))
    if value := environ.get(ENV_REMOTE_URL):
        fetch["remote_url"] = value
    if value := environ.get(ENV_CACHE_DIR):
        cache["base_dir"] = value
    if value := environ.get(ENV_MAX_AGE):
        cache["max_age_seconds"] = value
    return {**raw, "fetch": fetch, "cache": cache}


def load_settings(path: Path, *, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read the TOML configuration file and apply environment overrides.

    A missing file is treated as empty, so the environment alone can supply
    the remote URL.
    """
    raw: Dict[str, Any] = {}
    if path.exists():
        with path.open("rb") as handle:
            raw = tomllib.load(handle)
    env = os.environ if environ is None else environ
    return Settings.model_validate(_apply_environment(raw, env))
