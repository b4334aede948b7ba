"""
HTTP plumbing shared by every Bugcrowd request: session factory with
retries/proxy, a request helper that reports redirect targets to an
observer, and JSON decoding with fatal error mapping.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urljoin

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from bcscope.errors import FetchError
from bcscope.sync_common import debug

BASE_URL = "https://bugcrowd.com"
IDENTITY_URL = "https://identity.bugcrowd.com"
SESSION_COOKIE = "_bugcrowd_session"
USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:82.0) Gecko/20100101 Firefox/82.0"

DEFAULT_TIMEOUT = 30

RedirectObserver = Callable[[str], Optional[Any]]


class TimeoutHTTPAdapter(HTTPAdapter):
    """HTTPAdapter that applies a default timeout to every request it sends."""

    def __init__(self, *args, timeout: int = DEFAULT_TIMEOUT, **kwargs):
        self.timeout = timeout
        super().__init__(*args, **kwargs)

    def send(self, request, **kwargs):
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.timeout
        return super().send(request, **kwargs)


def make_session(proxy: str = "", retries: int = 5, timeout: int = DEFAULT_TIMEOUT) -> requests.Session:
    s = requests.Session()
    s.headers.update({"User-Agent": USER_AGENT})

    retry = Retry(
        total=retries,
        backoff_factor=0.8,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
        raise_on_status=False,
    )
    adapter = TimeoutHTTPAdapter(max_retries=retry, pool_connections=20, pool_maxsize=20, timeout=timeout)
    s.mount("https://", adapter)
    s.mount("http://", adapter)

    if proxy:
        s.proxies.update({"http": proxy, "https": proxy})
        # intercepting proxies present their own certificate
        s.verify = False
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    return s


def bugcrowd_headers(token: str) -> Dict[str, str]:
    return {
        "Cookie": f"{SESSION_COOKIE}={token}",
        "User-Agent": USER_AGENT,
        "Accept": "*/*",
    }


def redirect_targets(response) -> List[str]:
    """Absolute URL of every hop the client was redirected to."""
    targets = []
    for hop in getattr(response, "history", None) or []:
        location = hop.headers.get("Location")
        if location:
            targets.append(urljoin(hop.url, location))
    return targets


def send(
    session,
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    data: Any = None,
    on_redirect: Optional[RedirectObserver] = None,
) -> Tuple[requests.Response, List[Any]]:
    """
    Issue one request, following redirects.

    Every redirect target is passed to ``on_redirect``; whatever the
    observer returns (other than None) is collected and handed back next to
    the response.
    """
    try:
        r = session.request(method, url, headers=headers, data=data, allow_redirects=True)
    except requests.RequestException as e:
        raise FetchError(f"{method} {url} failed: {type(e).__name__}: {e}") from e

    captured = []
    for target in redirect_targets(r):
        debug(f"Redirecting to: {target}")
        if on_redirect is not None:
            value = on_redirect(target)
            if value is not None:
                captured.append(value)
    return r, captured


def get_text(session, url: str, token: str) -> str:
    r, _ = send(session, "GET", url, headers=bugcrowd_headers(token))
    if r.status_code >= 400:
        raise FetchError(f"GET {url} returned HTTP {r.status_code}")
    return r.text or ""


def get_json(session, url: str, token: str) -> Any:
    r, _ = send(session, "GET", url, headers=bugcrowd_headers(token))
    if r.status_code >= 400:
        raise FetchError(f"GET {url} returned HTTP {r.status_code}")
    # a 200 HTML page here is a login wall or WAF interstitial, not a broken program
    try:
        return r.json()
    except ValueError as e:
        raise FetchError(f"GET {url} did not return JSON: {(r.text or '')[:200]}") from e
