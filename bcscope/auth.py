"""
Bugcrowd researcher login (email + password, 2FA must be disabled).

The handshake is four requests sharing one cookie jar:

  1. GET identity login page   -> login_challenge (only visible in a redirect) + csrf-token cookie
  2. POST credentials           -> JSON {"redirect_to": ...}
  3. GET redirect_to            -> session cookie set
  4. read _bugcrowd_session from the jar

Each step takes the LoginState explicitly and advances ``state.step``.
"""

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse

import requests

from bcscope.errors import AuthError, WafBlockedError
from bcscope.http import IDENTITY_URL, SESSION_COOKIE, USER_AGENT, make_session, send
from bcscope.sync_common import debug, log

LOGIN_PAGE_URL = f"{IDENTITY_URL}/login?user_hint=researcher&returnTo=/dashboard"
LOGIN_POST_URL = f"{IDENTITY_URL}/login"
IDENTITY_DOMAIN = "identity.bugcrowd.com"
CSRF_COOKIE = "csrf-token"

STEP_INIT = "init"
STEP_CHALLENGE_OBTAINED = "challenge_obtained"
STEP_AUTHENTICATED = "authenticated"
STEP_REDIRECT_FOLLOWED = "redirect_followed"
STEP_SESSION_EXTRACTED = "session_extracted"


@dataclass
class LoginState:
    session: requests.Session
    step: str = STEP_INIT
    login_challenge: str = ""
    csrf_token: str = ""
    redirect_to: str = ""
    session_token: str = ""
    cookies: dict = field(default_factory=dict)


def challenge_from_url(url: str) -> Optional[str]:
    values = parse_qs(urlparse(url).query).get("login_challenge")
    if values and values[0]:
        return values[0]
    return None


def cookie_value(state: LoginState, name: str, domain: str = IDENTITY_DOMAIN) -> str:
    for cookie in state.session.cookies:
        if cookie.name != name:
            continue
        if not cookie.domain or domain.endswith(cookie.domain.lstrip(".")):
            return cookie.value or ""
    return ""


def require_step(state: LoginState, expected: str) -> None:
    if state.step != expected:
        raise AuthError(f"login step out of order: at {state.step}, expected {expected}")


def fetch_login_challenge(state: LoginState) -> LoginState:
    require_step(state, STEP_INIT)

    r, challenges = send(
        state.session,
        "GET",
        LOGIN_PAGE_URL,
        headers={"User-Agent": USER_AGENT},
        on_redirect=challenge_from_url,
    )
    if r.status_code == 403:
        raise WafBlockedError("Got 403 on first request. You may be WAF banned. Change IP or wait")

    # the final URL counts too when the last hop already carries the challenge
    final = challenge_from_url(getattr(r, "url", "") or "")
    if final:
        challenges.append(final)
    if not challenges:
        raise AuthError("login_challenge not found in the identity redirect chain")

    state.login_challenge = challenges[-1]
    state.cookies = {c.name: c.value for c in state.session.cookies}
    state.step = STEP_CHALLENGE_OBTAINED
    debug(f"login_challenge={state.login_challenge}")
    return state


def submit_credentials(state: LoginState, email: str, password: str) -> LoginState:
    require_step(state, STEP_CHALLENGE_OBTAINED)

    state.csrf_token = cookie_value(state, CSRF_COOKIE)
    if not state.csrf_token:
        raise AuthError(f"{CSRF_COOKIE} cookie missing after loading the login page")

    body = urlencode(
        {
            "username": email,
            "password": password,
            "login_challenge": state.login_challenge,
            "otp_code": "",
            "backup_otp_code": "",
            "user_type": "RESEARCHER",
            "remember_me": "true",
        }
    )
    r, _ = send(
        state.session,
        "POST",
        LOGIN_POST_URL,
        headers={
            "User-Agent": USER_AGENT,
            "X-Csrf-Token": state.csrf_token,
            "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
            "Origin": IDENTITY_URL,
        },
        data=body,
    )
    if r.status_code == 401:
        raise AuthError("Login failed. Check your email and password. Make sure 2FA is off.")

    try:
        payload = r.json()
    except ValueError as e:
        raise AuthError(f"login response is not JSON (HTTP {r.status_code})") from e
    redirect_to = payload.get("redirect_to") if isinstance(payload, dict) else None
    if not redirect_to:
        raise AuthError(f"login response has no redirect_to (HTTP {r.status_code})")

    state.redirect_to = str(redirect_to)
    state.step = STEP_AUTHENTICATED
    return state


def follow_redirect(state: LoginState) -> LoginState:
    require_step(state, STEP_AUTHENTICATED)
    r, _ = send(
        state.session,
        "GET",
        state.redirect_to,
        headers={"User-Agent": USER_AGENT, "Origin": IDENTITY_URL},
    )
    if r.status_code >= 400:
        raise AuthError(f"login redirect {state.redirect_to} returned HTTP {r.status_code}")
    state.step = STEP_REDIRECT_FOLLOWED
    return state


def extract_session(state: LoginState) -> str:
    require_step(state, STEP_REDIRECT_FOLLOWED)
    token = cookie_value(state, SESSION_COOKIE)
    if not token:
        raise AuthError(f"{SESSION_COOKIE} cookie not set after login; the login flow may have changed")
    state.session_token = token
    state.step = STEP_SESSION_EXTRACTED
    return token


def login(email: str, password: str, proxy: str = "", session: Optional[requests.Session] = None) -> str:
    state = LoginState(session=session if session is not None else make_session(proxy))
    fetch_login_challenge(state)
    submit_credentials(state, email, password)
    follow_redirect(state)
    token = extract_session(state)
    log("Login OK. Fetching programs, please wait...")
    debug(f"SESSION: {token}")
    return token
