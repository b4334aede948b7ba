"""
Settings for the Bugcrowd sync, read from .env and the environment.

Env:
  BUGCROWD_EMAIL / BUGCROWD_PASSWORD   (login handshake)
  BUGCROWD_TOKEN                       (skip login, use this _bugcrowd_session)
  BUGCROWD_PROXY=http://127.0.0.1:8080
  BUGCROWD_CATEGORIES=all              (url, api, mobile, android, apple, other, hardware)
  BUGCROWD_ENGAGEMENT_CATEGORY=bug_bounty
  BUGCROWD_PRIVATE_ONLY=false
  BUGCROWD_CONCURRENCY=3
  BUGCROWD_SKIP_BROKEN=false
  BUGCROWD_INCLUDE_OOS=false
  BUGCROWD_HTTP_TIMEOUT=30
  BUGCROWD_HTTP_RETRIES=5
  BUGCROWD_DEBUG=false
  DB_DSN                               (optional, enables the Postgres store)
"""

import os
from dataclasses import dataclass, replace
from typing import Optional

from dotenv import load_dotenv

TRUE_VALUES = {"1", "true", "yes", "on"}


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in TRUE_VALUES


def env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    email: str = ""
    password: str = ""
    token: str = ""
    proxy: str = ""
    categories: str = "all"
    engagement_category: str = "bug_bounty"
    private_only: bool = False
    concurrency: int = 3
    skip_broken: bool = False
    include_oos: bool = False
    http_timeout: int = 30
    http_retries: int = 5
    debug: bool = False
    db_dsn: Optional[str] = None

    def with_overrides(self, **kwargs) -> "Settings":
        # None means "flag not given on the command line"
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})


def load_settings(dotenv_path: str = ".env") -> Settings:
    load_dotenv(dotenv_path)
    return Settings(
        email=os.getenv("BUGCROWD_EMAIL", "").strip(),
        password=os.getenv("BUGCROWD_PASSWORD", ""),
        token=os.getenv("BUGCROWD_TOKEN", "").strip(),
        proxy=os.getenv("BUGCROWD_PROXY", "").strip(),
        categories=os.getenv("BUGCROWD_CATEGORIES", "all").strip() or "all",
        engagement_category=os.getenv("BUGCROWD_ENGAGEMENT_CATEGORY", "bug_bounty").strip() or "bug_bounty",
        private_only=env_bool("BUGCROWD_PRIVATE_ONLY"),
        concurrency=env_int("BUGCROWD_CONCURRENCY", 3),
        skip_broken=env_bool("BUGCROWD_SKIP_BROKEN"),
        include_oos=env_bool("BUGCROWD_INCLUDE_OOS"),
        http_timeout=env_int("BUGCROWD_HTTP_TIMEOUT", 30),
        http_retries=env_int("BUGCROWD_HTTP_RETRIES", 5),
        debug=env_bool("BUGCROWD_DEBUG"),
        db_dsn=os.getenv("DB_DSN") or None,
    )
