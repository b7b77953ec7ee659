"""
Server API calls: authenticate, validate token, submit attendance.

All calls are blocking (run them from worker threads). Nothing raises past
this module: every outcome is a Success or an Error (see result.py).
Transport retries for 502/503/504 happen inside the session's adapter.
"""

import time

import requests

from .config import log
from .constants import API_TIMEOUT
from .models import AuthToken, ResponseItem
from .result import Error, ErrorKind, Success, not_authenticated


# ─── URL / header helpers ────────────────────────────────────────

def normalize_base_url(url):
    cleaned = (url or "").strip()
    if "://" not in cleaned:
        cleaned = "http://" + cleaned
    if cleaned.endswith("/"):
        cleaned = cleaned[:-1]
    return cleaned


def build_url(base_url, route):
    base = normalize_base_url(base_url)
    route = (route or "").strip()
    if route.startswith("/"):
        route = route[1:]
    return f"{base}/{route}" if route else base


def build_headers(api_key=None, token=None, extensions=None):
    headers = {"Content-Type": "application/json"}
    if api_key is not None:
        headers["X-API-Key"] = api_key
    if token is not None:
        headers["Authorization"] = f"Bearer {token}"
    # Extensions go last so they can override anything computed above
    headers.update(extensions or {})
    return headers


# ─── Response decoding ───────────────────────────────────────────

_NO_BODY = object()


def _json_body(resp):
    if not resp.content:
        return _NO_BODY
    try:
        return resp.json()
    except ValueError:
        return _NO_BODY


def _first_present(*values):
    for value in values:
        if value is not None:
            return value
    return None


def _as_str(value):
    return None if value is None else str(value)


def parse_auth_body(body, now_ms):
    """
    Turn an auth response body into an AuthToken, or None when it is unusable.

    Identity fields may live under "user", under "teacher", or at the root;
    the first non-null value in that order wins.
    """
    if not isinstance(body, dict) or body.get("success") is not True:
        return None
    access_token = body.get("accessToken")
    expires_in = body.get("expiresIn")
    if not access_token or expires_in is None or isinstance(expires_in, bool):
        return None
    try:
        expires_in = int(expires_in)
    except (TypeError, ValueError):
        return None

    user = body.get("user") if isinstance(body.get("user"), dict) else {}
    teacher = body.get("teacher") if isinstance(body.get("teacher"), dict) else {}

    def pick(field):
        return _first_present(user.get(field), teacher.get(field), body.get(field))

    return AuthToken(
        access_token=str(access_token),
        expires_in=expires_in,
        expires_at=now_ms + expires_in * 1000,
        user_id=_as_str(pick("id")),
        role=_as_str(pick("role")),
        can_edit_tags=pick("canEditTags") is True,
    )


def parse_submission_body(body):
    """
    Decode the submission response by its structural kind:
      array of objects → ResponseItem(name, phone)
      array of strings → ResponseItem(name=s)
      anything else    → []
    Elements of any other kind inside an array are skipped.
    """
    if not isinstance(body, list):
        return []
    items = []
    for element in body:
        if isinstance(element, dict):
            name = element.get("name")
            phone = element.get("phone")
            items.append(ResponseItem(
                name=name if isinstance(name, str) else None,
                phone=phone if isinstance(phone, str) else None,
            ))
        elif isinstance(element, str):
            items.append(ResponseItem(name=element, phone=None))
    return items


def _is_success(resp):
    return 200 <= resp.status_code < 300


# ─── Gateway ─────────────────────────────────────────────────────

class ApiGateway:
    """
    Stateless protocol layer. Reads and writes the token only through the
    AuthTokenCache it is given; holds no business state of its own.
    """

    def __init__(self, session, token_cache, timeout=API_TIMEOUT, clock=time.time):
        self.session = session
        self._tokens = token_cache
        self._timeout = timeout
        self._clock = clock

    def _now_ms(self):
        return int(self._clock() * 1000)

    # ─── Authentication ──────────────────────────────────────

    def authenticate(self, base_url, api_key, username, password, auth_route, extensions=None):
        url = build_url(base_url, auth_route)
        headers = build_headers(api_key=api_key, extensions=extensions)
        payload = {"username": username, "password": password}

        try:
            resp = self.session.post(url, json=payload, headers=headers, timeout=self._timeout)
        except requests.RequestException as e:
            log.warning("Auth network error: %s", e)
            return Error(f"Authentication error: {e}", kind=ErrorKind.NETWORK)

        if not _is_success(resp):
            log.warning("Auth failed: HTTP %d", resp.status_code)
            return Error(f"Authentication failed: {resp.status_code}", resp.status_code, ErrorKind.PROTOCOL)

        token = parse_auth_body(_json_body(resp), self._now_ms())
        if token is None:
            log.warning("Auth failed: invalid response body")
            return Error("Authentication failed: Invalid response", kind=ErrorKind.VALIDATION)

        self._tokens.save(token)
        log.info("Auth OK | user=%s | role=%s | expiresIn=%ds",
                 token.user_id or "-", token.role or "-", token.expires_in)
        return Success(token)

    # ─── Token validation ────────────────────────────────────

    def validate_token(self, base_url, validate_route, extensions=None):
        """
        Success(True/False). A failed request is reported as Success(False),
        since callers re-authenticate in both cases.
        """
        token = self._tokens.load_usable(self._now_ms())
        if token is None:
            return Success(False)

        url = build_url(base_url, validate_route)
        headers = build_headers(token=token.access_token, extensions=extensions)
        try:
            resp = self.session.get(url, headers=headers, timeout=self._timeout)
        except requests.RequestException as e:
            log.info("Token validation network error: %s", e)
            return Success(False)

        if not _is_success(resp):
            log.info("Token validation rejected: HTTP %d", resp.status_code)
            return Success(False)

        body = _json_body(resp)
        valid = isinstance(body, dict) and body.get("valid") is True
        log.debug("Token validation: valid=%s", valid)
        return Success(valid)

    def ensure_authenticated(self, settings):
        """Reuse the cached token when the server still accepts it, else log in again."""
        cached = self._tokens.load_usable(self._now_ms())
        if cached is not None:
            result = self.validate_token(settings.api_base_url, settings.validate_route,
                                         settings.extensions)
            if result.ok and result.value:
                return Success(cached)
            log.info("Cached token not accepted: re-authenticating")

        return self.authenticate(
            base_url=settings.api_base_url,
            api_key=settings.api_key,
            username=settings.username,
            password=settings.password,
            auth_route=settings.auth_route,
            extensions=settings.extensions,
        )

    # ─── Attendance submission ───────────────────────────────

    def submit_attendance(self, base_url, main_route, records, extensions=None):
        """POST SubmissionRecords. Success(list[ResponseItem]) or Error."""
        token = self._tokens.load_usable(self._now_ms())
        if token is None:
            return not_authenticated()

        url = build_url(base_url, main_route)
        headers = build_headers(token=token.access_token, extensions=extensions)
        payload = [r.to_dict() for r in records]

        try:
            resp = self.session.post(url, json=payload, headers=headers, timeout=self._timeout)
        except requests.RequestException as e:
            log.warning("Submission network error: %s", e)
            return Error(f"Submission error: {e}", kind=ErrorKind.NETWORK)

        if not _is_success(resp):
            log.warning("Submission failed: HTTP %d: %s", resp.status_code, (resp.text or "")[:200])
            return Error(f"Submission failed: {resp.status_code}", resp.status_code, ErrorKind.PROTOCOL)

        items = parse_submission_body(_json_body(resp))
        log.info("Submission OK | sent=%d | response items=%d", len(payload), len(items))
        return Success(items)
