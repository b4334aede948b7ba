"""
Program discovery: walk the engagements listing page by page.

Bugcrowd sometimes reports fewer pages than actually exist, so the walk
only stops on an empty page.
"""

from typing import Dict, List, Tuple
from urllib.parse import urlencode

from bcscope.errors import ParseError
from bcscope.http import BASE_URL, get_json
from bcscope.sync_common import debug

LIST_ENDPOINT = f"{BASE_URL}/engagements.json"


def listing_url(engagement_category: str, page: int) -> str:
    params = {
        "category": engagement_category,
        "sort_by": "promoted",
        "sort_direction": "desc",
        "page": page,
    }
    return f"{LIST_ENDPOINT}?{urlencode(params)}"


def list_programs(session, token: str, engagement_category: str = "bug_bounty",
                  private_only: bool = False) -> Tuple[List[str], Dict[str, str]]:
    """
    Return (paths, path -> program name).

    ``paths`` keeps discovery order and never holds the same path twice.
    """
    paths: List[str] = []
    names: Dict[str, str] = {}
    page = 1

    while True:
        js = get_json(session, listing_url(engagement_category, page), token)
        if not isinstance(js, dict):
            raise ParseError(f"engagements page {page} is not a JSON object")

        items = js.get("engagements") or []
        if not isinstance(items, list):
            raise ParseError(f"engagements page {page}: engagements is not a list")
        if not items:
            break

        debug(f"Programs page {page}: {len(items)} items")

        for it in items:
            if not isinstance(it, dict):
                raise ParseError(f"engagements page {page}: entry is not an object: {it!r}"[:200])
            path = str(it.get("briefUrl") or "").strip()
            if not path:
                continue
            if private_only and it.get("accessStatus") == "open":
                continue
            if path in names:
                continue
            paths.append(path)
            names[path] = it.get("name") or ""

        page += 1

    return paths, names
