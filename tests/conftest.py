import json

import pytest
from requests.cookies import RequestsCookieJar


class FakeResponse:
    def __init__(self, status_code=200, text="", url="", history=None, headers=None, cookies=None):
        self.status_code = status_code
        self.text = text
        self.url = url
        self.history = history or []
        self.headers = headers or {}
        # (name, value, domain) set on the session jar when served
        self.cookies_to_set = cookies or []

    def json(self):
        return json.loads(self.text)


def json_response(obj, status_code=200, **kw):
    return FakeResponse(status_code=status_code, text=json.dumps(obj), **kw)


def redirect_hop(from_url, location):
    return FakeResponse(status_code=302, url=from_url, headers={"Location": location})


class FakeSession:
    """
    Routes map a URL to a response, a list of responses (served in order)
    or a callable(method, url, headers, data) -> response.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.cookies = RequestsCookieJar()

    def request(self, method, url, headers=None, data=None, timeout=None, allow_redirects=True):
        self.calls.append((method, url, headers, data))
        if url not in self.routes:
            raise AssertionError(f"unexpected request: {method} {url}")
        route = self.routes[url]
        if callable(route):
            r = route(method, url, headers, data)
        elif isinstance(route, list):
            r = route.pop(0)
        else:
            r = route
        if not r.url:
            r.url = url
        for name, value, domain in r.cookies_to_set:
            self.cookies.set(name, value, domain=domain, path="/")
        return r

    def urls(self):
        return [c[1] for c in self.calls]


@pytest.fixture
def fake_session():
    return FakeSession()
