#!/usr/bin/env python3
"""
sync_bugcrowd.py

Log into Bugcrowd as a researcher, walk every accessible program and print
the in-scope targets as one JSON array on stdout:

  [{"url": ..., "name": ..., "assets": [{"name": ..., "description": ..., "category": ...}]}]

Progress and errors go to stderr. Any failure aborts the whole run: a
partial inventory is worse than none.

Env (see bcscope.config for the full list):
  BUGCROWD_EMAIL / BUGCROWD_PASSWORD  (2FA must be off)
  BUGCROWD_TOKEN                      (optional, skips the login)
  DB_DSN                              (optional, also upsert into Postgres)

Exit codes:
  1 fatal error (WAF block, login rejected, fetch/parse failure, bad config)
  2 missing credentials
  130 interrupted
"""

import argparse
import sys
import time

from bcscope.aggregate import get_all_programs_scope
from bcscope.auth import login
from bcscope.config import Settings, load_settings
from bcscope.errors import ConfigError
from bcscope.http import make_session
from bcscope.scope import ALL_CATEGORIES, CATEGORIES, print_program_scope, validate_categories
from bcscope.store import sync_to_db
from bcscope.sync_common import log, set_debug


def parse_args(argv=None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Extract Bugcrowd program scopes")
    ap.add_argument("--email", help="researcher email (BUGCROWD_EMAIL)")
    ap.add_argument("--password", help="researcher password (BUGCROWD_PASSWORD)")
    ap.add_argument("--token", help="existing _bugcrowd_session value (BUGCROWD_TOKEN)")
    ap.add_argument("--proxy", help="HTTP proxy, e.g. http://127.0.0.1:8080")
    ap.add_argument("--categories", choices=[ALL_CATEGORIES] + sorted(CATEGORIES), type=str.lower,
                    help="target category filter (default: all)")
    ap.add_argument("--engagement-category", help="listing category (default: bug_bounty)")
    ap.add_argument("--private-only", action="store_true", default=None, help="skip programs open to everyone")
    ap.add_argument("--concurrency", type=int, help="parallel program fetches (default: 3)")
    ap.add_argument("--skip-broken", action="store_true", default=None,
                    help="log and skip programs whose page cannot be parsed instead of aborting")
    ap.add_argument("--include-oos", action="store_true", default=None, help="also print out-of-scope targets")
    ap.add_argument("--db", dest="db_dsn", help="Postgres DSN to upsert into (DB_DSN)")
    ap.add_argument("--debug", action="store_true", default=None)
    return ap.parse_args(argv)


def build_settings(args: argparse.Namespace, base: Settings) -> Settings:
    return base.with_overrides(
        email=args.email,
        password=args.password,
        token=args.token,
        proxy=args.proxy,
        categories=args.categories,
        engagement_category=args.engagement_category,
        private_only=args.private_only,
        concurrency=args.concurrency,
        skip_broken=args.skip_broken,
        include_oos=args.include_oos,
        db_dsn=args.db_dsn,
        debug=args.debug,
    )


def run(settings: Settings) -> int:
    set_debug(settings.debug)

    # config errors surface before any network activity
    categories = validate_categories(settings.categories)
    if settings.concurrency < 1:
        raise ConfigError(f"concurrency must be >= 1 (got {settings.concurrency})")

    if not settings.token and not (settings.email and settings.password):
        log("[FATAL] Missing BUGCROWD_EMAIL/BUGCROWD_PASSWORD (or BUGCROWD_TOKEN) in .env")
        return 2

    start = time.time()
    token = settings.token
    if not token:
        login_session = make_session(settings.proxy, settings.http_retries, settings.http_timeout)
        token = login(settings.email, settings.password, session=login_session)

    session = make_session(settings.proxy, settings.http_retries, settings.http_timeout)
    programs = get_all_programs_scope(
        session,
        token,
        categories=categories,
        concurrency=settings.concurrency,
        engagement_category=settings.engagement_category,
        private_only=settings.private_only,
        skip_broken=settings.skip_broken,
    )

    print_program_scope(programs, include_oos=settings.include_oos)
    sync_to_db(settings.db_dsn, programs)

    in_scope = sum(len(p.in_scope) for p in programs)
    log(f"[DONE] {time.time() - start:.1f}s programs={len(programs)} in_scope_targets={in_scope}")
    return 0


def main(argv=None) -> None:
    args = parse_args(argv)
    try:
        settings = build_settings(args, load_settings())
        sys.exit(run(settings))
    except KeyboardInterrupt:
        log("Interrupted by user.")
        sys.exit(130)
    except Exception as e:
        log(f"[FATAL] {type(e).__name__}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
