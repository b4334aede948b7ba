import random
import threading
import time

import pytest

from bcscope import aggregate
from bcscope.errors import ConfigError, FetchError, ParseError
from bcscope.programs import listing_url
from bcscope.scope import ProgramData
from conftest import FakeResponse, FakeSession, json_response


def fake_resolver(fail=None, broken=None):
    seen = []
    lock = threading.Lock()

    def resolve(session, handle, categories, token, name=""):
        time.sleep(random.uniform(0, 0.01))
        with lock:
            seen.append(handle)
        if handle == fail:
            raise FetchError(f"boom {handle}")
        if handle == broken:
            raise ParseError("bad page", handle)
        return ProgramData(url="https://bugcrowd.com" + handle, name=name)

    resolve.seen = seen
    return resolve


def test_collects_every_program(monkeypatch):
    resolve = fake_resolver()
    monkeypatch.setattr(aggregate, "resolve_scope", resolve)
    paths = [f"/p{i}" for i in range(25)]
    names = {p: p.upper() for p in paths}

    programs = aggregate.collect_all(FakeSession(), "tok", paths, names, "all", concurrency=4)

    assert len(programs) == 25
    assert sorted(p.url for p in programs) == sorted("https://bugcrowd.com" + p for p in paths)
    assert sorted(resolve.seen) == sorted(paths)
    assert {p.name for p in programs} == set(names.values())


def test_more_workers_than_programs(monkeypatch):
    monkeypatch.setattr(aggregate, "resolve_scope", fake_resolver())
    programs = aggregate.collect_all(FakeSession(), "tok", ["/a", "/b"], {}, "all", concurrency=8)
    assert len(programs) == 2


def test_empty_listing(monkeypatch):
    monkeypatch.setattr(aggregate, "resolve_scope", fake_resolver())
    assert aggregate.collect_all(FakeSession(), "tok", [], {}, "all", concurrency=3) == []


def test_worker_failure_aborts_run(monkeypatch):
    monkeypatch.setattr(aggregate, "resolve_scope", fake_resolver(fail="/p3"))
    paths = [f"/p{i}" for i in range(50)]
    with pytest.raises(FetchError, match="boom /p3"):
        aggregate.collect_all(FakeSession(), "tok", paths, {}, "all", concurrency=2)


def test_parse_error_is_fatal_by_default(monkeypatch):
    monkeypatch.setattr(aggregate, "resolve_scope", fake_resolver(broken="/p1"))
    with pytest.raises(ParseError):
        aggregate.collect_all(FakeSession(), "tok", ["/p0", "/p1", "/p2"], {}, "all", concurrency=2)


def test_skip_broken_drops_only_unparseable_program(monkeypatch):
    monkeypatch.setattr(aggregate, "resolve_scope", fake_resolver(broken="/p1"))
    agg = aggregate.Aggregator(FakeSession(), "tok", "all", concurrency=2, skip_broken=True)
    programs = agg.run(["/p0", "/p1", "/p2"], {})

    assert sorted(p.url for p in programs) == ["https://bugcrowd.com/p0", "https://bugcrowd.com/p2"]
    assert agg.skipped == ["/p1"]


def test_skip_broken_still_fails_on_fetch_errors(monkeypatch):
    monkeypatch.setattr(aggregate, "resolve_scope", fake_resolver(fail="/p0"))
    with pytest.raises(FetchError):
        aggregate.collect_all(FakeSession(), "tok", ["/p0", "/p1"], {}, "all", concurrency=1, skip_broken=True)


def test_invalid_concurrency():
    with pytest.raises(ConfigError):
        aggregate.collect_all(FakeSession(), "tok", ["/a"], {}, "all", concurrency=0)


def test_get_all_programs_scope_end_to_end():
    base = "https://bugcrowd.com"
    routes = {
        listing_url("bug_bounty", 1): json_response(
            {"engagements": [{"briefUrl": "/acme", "name": "Acme", "accessStatus": "open"}]}
        ),
        listing_url("bug_bounty", 2): json_response({"engagements": []}),
        base + "/acme/target_groups": json_response(
            {"groups": [{"in_scope": True, "targets_url": "/acme/target_groups/1/targets"}]}
        ),
        base + "/acme/target_groups/1/targets": json_response(
            {"targets": [{"name": "Site", "uri": "https://acme.test", "category": "website", "description": ""}]}
        ),
    }
    programs = aggregate.get_all_programs_scope(FakeSession(routes), "tok", concurrency=2)

    assert len(programs) == 1
    assert programs[0].name == "Acme"
    assert programs[0].in_scope[0].target == "https://acme.test"


def test_skip_broken_still_aborts_when_brief_documents_are_html():
    base = "https://bugcrowd.com"
    routes = {}
    for slug in ("a", "b"):
        doc = f"/engagements/{slug}/brief_versions/v1"
        routes[f"{base}/engagements/{slug}"] = FakeResponse(
            text=(
                "<div data-react-class='ResearcherEngagementBrief' "
                "data-api-endpoints='{\"engagementBriefApi\": {\"getBriefVersionDocument\": \"%s\"}}'></div>" % doc
            )
        )
        routes[base + doc + ".json"] = FakeResponse(text="<html>Sign in</html>")

    agg = aggregate.Aggregator(FakeSession(routes), "tok", "all", concurrency=2, skip_broken=True)
    with pytest.raises(FetchError, match="did not return JSON"):
        agg.run(["/engagements/a", "/engagements/b"], {})
    assert agg.skipped == []


def test_skip_broken_skips_malformed_scope_group():
    base = "https://bugcrowd.com"
    routes = {
        base + "/good/target_groups": json_response({"groups": []}),
        base + "/bad/target_groups": json_response({"groups": [None]}),
    }
    agg = aggregate.Aggregator(FakeSession(routes), "tok", "all", concurrency=2, skip_broken=True)
    programs = agg.run(["/good", "/bad"], {})

    assert [p.url for p in programs] == [base + "/good"]
    assert agg.skipped == ["/bad"]
