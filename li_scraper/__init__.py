from __future__ import annotations

from .analyze import analyze_post
from .config import config_sha256, load_config, resolve_runtime_secrets
from .config_schema import AppConfig
from .errors import ConfigError, JobFailedError, JobStartError, JobTimeoutError, ScrapeError
from .normalize import canonical_post_from_apify_item
from .post import CanonicalPost, PostAnalysis
from .scrape import ScrapeResult, run_scrape

__all__ = [
    "AppConfig",
    "CanonicalPost",
    "ConfigError",
    "JobFailedError",
    "JobStartError",
    "JobTimeoutError",
    "PostAnalysis",
    "ScrapeError",
    "ScrapeResult",
    "analyze_post",
    "canonical_post_from_apify_item",
    "config_sha256",
    "load_config",
    "resolve_runtime_secrets",
    "run_scrape",
]
