#!/usr/bin/env python3
"""
Common helpers: timestamped logging and scope identifier canonicalization.
"""

import re
import sys
import time
from typing import Optional
from urllib.parse import urlparse

DEBUG = False

CIDR_RE = re.compile(r"^(?:\d{1,3}\.){3}\d{1,3}/\d{1,2}$")
IP_RE = re.compile(r"^(?:\d{1,3}\.){3}\d{1,3}$")

# Bugcrowd target categories that point at network-reachable hosts
HOST_CATEGORIES = {"website", "api", "network", "iot"}


def ts() -> str:
    return time.strftime("%H:%M:%S")


def log(msg: str) -> None:
    # stdout carries the JSON result
    print(f"[{ts()}] {msg}", file=sys.stderr, flush=True)


def set_debug(enabled: bool) -> None:
    global DEBUG
    DEBUG = bool(enabled)


def debug(msg: str) -> None:
    if DEBUG:
        log(f"[DEBUG] {msg}")


def guess_type_from_identifier(identifier: str) -> str:
    low = (identifier or "").strip().lower()
    if low.startswith("http://") or low.startswith("https://"):
        return "url"
    if low.startswith("*."):
        return "wildcard"
    if CIDR_RE.match(low):
        return "cidr"
    if IP_RE.match(low):
        return "ip"
    if " " not in low and "." in low:
        return "domain"
    return "other"


def normalize_asset_type(raw_category: Optional[str], identifier: str) -> str:
    """
    Map a Bugcrowd target category onto the shared asset types
    (domain, wildcard, url, ip, cidr, other).
    """
    cat = (raw_category or "").strip().lower()
    if cat in HOST_CATEGORIES or not cat:
        return guess_type_from_identifier(identifier)
    return "other"


def clean_identifier(asset_type: str, identifier: str) -> str:
    ident = (identifier or "").strip()
    if not ident:
        return ""
    if asset_type in ("domain", "wildcard"):
        return ident.lower().rstrip(".")
    if asset_type == "url":
        p = urlparse(ident)
        if p.scheme and p.netloc:
            return f"{p.scheme.lower()}://{p.netloc.lower()}{p.path or ''}"
        return ident
    return ident
