import json

import pytest

from bcscope.config import Settings, load_settings
from bcscope.errors import ConfigError
from bcscope.programs import listing_url
from conftest import FakeResponse, FakeSession, json_response
from ingest import sync_bugcrowd


def listing_session():
    base = "https://bugcrowd.com"
    doc = "/engagements/acme-corp/brief_versions/v1"
    page_html = (
        "<div data-react-class='ResearcherEngagementBrief' "
        "data-api-endpoints='{\"engagementBriefApi\": {\"getBriefVersionDocument\": \"%s\"}}'></div>" % doc
    )
    return FakeSession(
        {
            listing_url("bug_bounty", 1): json_response(
                {"engagements": [{"briefUrl": "/engagements/acme-corp", "name": "Acme", "accessStatus": "open"}]}
            ),
            listing_url("bug_bounty", 2): json_response({"engagements": []}),
            base + "/engagements/acme-corp": FakeResponse(text=page_html),
            base + doc + ".json": json_response(
                {
                    "data": {
                        "scope": [
                            {"inScope": True, "targets": [{"name": "API", "uri": "", "category": "api", "description": "d"}]},
                            {"inScope": False, "targets": [{"name": "Blog", "uri": "blog.acme.test", "category": "website"}]},
                        ]
                    }
                }
            ),
        }
    )


def test_run_with_token_prints_in_scope_json(monkeypatch, capsys):
    session = listing_session()
    monkeypatch.setattr(sync_bugcrowd, "make_session", lambda *a, **kw: session)

    rc = sync_bugcrowd.run(Settings(token="sess-1", concurrency=2))

    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out == [
        {
            "url": "https://bugcrowd.com/engagements/acme-corp",
            "name": "Acme",
            "assets": [{"name": "API", "description": "d", "category": "api"}],
        }
    ]


def test_run_rejects_bad_category_before_any_request(monkeypatch):
    session = FakeSession()
    monkeypatch.setattr(sync_bugcrowd, "make_session", lambda *a, **kw: session)

    with pytest.raises(ConfigError):
        sync_bugcrowd.run(Settings(token="t", categories="desktop"))
    assert session.calls == []


def test_run_without_credentials(monkeypatch):
    monkeypatch.setattr(sync_bugcrowd, "make_session", lambda *a, **kw: FakeSession())
    assert sync_bugcrowd.run(Settings()) == 2


def test_main_exits_nonzero_on_fatal(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for k in ("BUGCROWD_TOKEN", "BUGCROWD_CATEGORIES", "BUGCROWD_CONCURRENCY", "DB_DSN"):
        monkeypatch.delenv(k, raising=False)
    monkeypatch.setattr(sync_bugcrowd, "make_session", lambda *a, **kw: FakeSession())

    with pytest.raises(SystemExit) as exc:
        sync_bugcrowd.main(["--token", "t", "--concurrency", "0"])
    assert exc.value.code == 1


def test_cli_flags_override_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BUGCROWD_CONCURRENCY", "7")
    monkeypatch.setenv("BUGCROWD_PRIVATE_ONLY", "yes")
    monkeypatch.setenv("BUGCROWD_CATEGORIES", "api")

    args = sync_bugcrowd.parse_args(["--categories", "Mobile", "--include-oos"])
    s = sync_bugcrowd.build_settings(args, load_settings())

    assert s.concurrency == 7
    assert s.private_only is True
    assert s.categories == "mobile"
    assert s.include_oos is True
    assert s.skip_broken is False
