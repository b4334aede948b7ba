"""
Per-program scope extraction.

Bugcrowd serves two unrelated representations of a program's scope:

- engagement pages (/engagements/<slug>): the HTML embeds a React island
  whose data-api-endpoints attribute points at a versioned brief document;
  scope lives under data.scope[*].targets[*].
- legacy pages (/<slug>): <program>/target_groups lists groups, each with
  its own targets table.

The category filter only applies to the legacy shape; brief documents are
returned unfiltered.
"""

import json

from bs4 import BeautifulSoup

from bcscope.errors import ParseError
from bcscope.http import BASE_URL, get_json, get_text
from bcscope.scope import ALL_CATEGORIES, ProgramData, make_entry, resolve_categories
from bcscope.sync_common import debug

ENGAGEMENT_PREFIX = "/engagements/"
BRIEF_SELECTOR = "div[data-react-class='ResearcherEngagementBrief']"
BRIEF_ENDPOINTS_ATTR = "data-api-endpoints"


def expect_list(value, what: str, handle: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ParseError(f"{what} is not a list", handle)
    return value


def expect_dict(value, what: str, handle: str) -> dict:
    if not isinstance(value, dict):
        raise ParseError(f"{what} is not an object", handle)
    return value


def add_targets(pdata: ProgramData, handle: str, targets, in_scope: bool, category_filter: str = "") -> int:
    added = 0
    for t in expect_list(targets, "targets", handle):
        if not isinstance(t, dict):
            continue
        category = t.get("category") or ""
        if category_filter and category != category_filter:
            continue
        entry = make_entry(t.get("name"), t.get("uri"), t.get("description"), category)
        if not entry.target:
            continue
        pdata.add(entry, in_scope)
        added += 1
    return added


class EngagementShape:
    name = "engagement"

    def brief_document_path(self, session, handle: str, token: str) -> str:
        html = get_text(session, BASE_URL + handle, token)
        soup = BeautifulSoup(html, "html.parser")

        div = soup.select_one(BRIEF_SELECTOR)
        if div is None:
            raise ParseError("ResearcherEngagementBrief element not found", handle)
        raw = div.get(BRIEF_ENDPOINTS_ATTR)
        if raw is None:
            raise ParseError(f"{BRIEF_ENDPOINTS_ATTR} attribute not found", handle)

        try:
            endpoints = json.loads(raw)
        except ValueError as e:
            raise ParseError(f"{BRIEF_ENDPOINTS_ATTR} is not JSON", handle) from e

        api = expect_dict(endpoints, BRIEF_ENDPOINTS_ATTR, handle).get("engagementBriefApi")
        path = api.get("getBriefVersionDocument") if isinstance(api, dict) else None
        if not path:
            raise ParseError("getBriefVersionDocument endpoint missing", handle)
        return f"{path}.json"

    def resolve(self, session, pdata: ProgramData, handle: str, categories: str, token: str) -> ProgramData:
        doc_path = self.brief_document_path(session, handle, token)
        debug(f"{handle}: brief document {doc_path}")
        doc = get_json(session, BASE_URL + doc_path, token)

        data = expect_dict(expect_dict(doc, "brief document", handle).get("data"), "brief document data", handle)
        for group in expect_list(data.get("scope"), "data.scope", handle):
            group = expect_dict(group, "scope group", handle)
            add_targets(pdata, handle, group.get("targets"), bool(group.get("inScope")))
        return pdata


class TargetGroupShape:
    name = "target_groups"

    def resolve(self, session, pdata: ProgramData, handle: str, categories: str, token: str) -> ProgramData:
        # only the first backend token is compared: "mobile" keeps android, drops ios
        category_filter = ""
        if categories != ALL_CATEGORIES:
            category_filter = resolve_categories(categories)[0]

        js = get_json(session, pdata.url + "/target_groups", token)
        groups = expect_dict(js, "target_groups response", handle).get("groups")
        for group in expect_list(groups, "groups", handle):
            group = expect_dict(group, "target group", handle)
            targets_url = group.get("targets_url")
            if not targets_url:
                continue
            table = get_json(session, BASE_URL + targets_url, token)
            targets = expect_dict(table, "targets table", handle).get("targets")
            add_targets(pdata, handle, targets, bool(group.get("in_scope")), category_filter)
        return pdata


def shape_for(handle: str):
    if handle.startswith(ENGAGEMENT_PREFIX):
        return EngagementShape()
    return TargetGroupShape()


def resolve_scope(session, handle: str, categories: str, token: str, name: str = "") -> ProgramData:
    pdata = ProgramData(url=BASE_URL + handle, name=name)
    return shape_for(handle).resolve(session, pdata, handle, categories, token)
