"""Camera light JSON-RPC client.

Talks to the ``/RPC2`` JSON-RPC endpoints exposed by IP camera firmware:
performs the ``global.login`` challenge handshake, keeps one session
cached for reuse, and switches the camera's illuminator through the
``Lighting_V2`` configuration block.  :class:`Client` is the main entry
point::

    import asyncio
    from dahualight import Client

    client = Client("192.168.1.108", "admin", "secret")
    result = await client.handle_command("auto 60")
    print(result.to_payload())

A rejected session is detected while reading the configuration; the
client then logs in again and retries the whole operation once.
"""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from http.cookies import CookieError, SimpleCookie
from typing import Any

import aiohttp
from aiohttp import hdrs

from dahualight._constants import (
    AUTHORITY_TYPE,
    BUSY_RETRY_DELAY,
    CLIENT_TYPE,
    CONFIG_DIR,
    CONFIG_FILE,
    ERROR_DEVICE_BUSY,
    HTTP_OK,
    LIGHTING_CONFIG,
    LOGIN_PATH,
    REQUEST_TIMEOUT,
    RPC_PATH,
    SESSION_ERROR_CODES,
    SESSION_TTL,
)
from dahualight._crypto import compute_login_hash
from dahualight.commands import FULL_BRIGHTNESS, LightMode, parse_command

_LOGGER = logging.getLogger(__name__)

SessionId = str | int


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class DahuaError(Exception):
    """Base class for every failure raised while talking to the camera."""


class TransportError(DahuaError, ConnectionError):
    """Raised when the HTTP request could not be completed."""


class RequestTimeoutError(TransportError, TimeoutError):
    """Raised when a request exceeds the per-request timeout."""


class ParseError(DahuaError, ValueError):
    """Raised when a successful HTTP response does not carry JSON."""


class ProtocolError(DahuaError, RuntimeError):
    """Raised on an HTTP error status or a response of unexpected shape."""


class AuthenticationError(DahuaError, RuntimeError):
    """Raised when the camera rejects the challenge answer."""


class SessionInvalidError(DahuaError, RuntimeError):
    """Raised when the camera no longer accepts the session in use.

    Recoverable: the caller drops the cached session and logs in again.
    """


class DeviceBusyError(DahuaError, RuntimeError):
    """Raised when the camera still reports error 486 after the busy retry."""


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Session:
    """An authenticated camera session."""

    session_id: SessionId
    """Token sent in the ``session`` field of every request."""

    cookies: str = ""
    """``Cookie`` header value captured at login."""

    expires_at: float = 0.0
    """Unix timestamp after which the session is not reused."""


@dataclass(frozen=True)
class LoginChallenge:
    """Nonce and realm returned by the first ``global.login`` call."""

    realm: str
    random: str
    session_id: SessionId | None


@dataclass(frozen=True)
class RpcResponse:
    """Raw outcome of a single JSON-RPC POST."""

    body: Any
    """Decoded JSON body, or ``None`` for an undecodable error response."""

    cookies: str
    """Cookies set by the response, joined into a ``Cookie`` header value."""

    status: int


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a light operation."""

    success: bool
    error: str | None = None
    retry_requested: bool = False
    """Set when the session was rejected and a fresh login may succeed."""

    response: dict[str, Any] | None = None
    """Final JSON body returned by the camera, when there was one."""

    def to_payload(self) -> dict[str, object]:
        """Render as ``{"result": ..., "error": ..., "retry": ...}``."""
        payload: dict[str, object] = {"result": self.success}
        if self.error is not None:
            payload["error"] = self.error
        if self.retry_requested:
            payload["retry"] = True
        return payload


class StatusLevel(StrEnum):
    """Severity of a :class:`StatusUpdate`."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"


@dataclass(frozen=True)
class StatusUpdate:
    """Progress indicator emitted while a command is handled."""

    level: StatusLevel
    label: str


# ---------------------------------------------------------------------------
# Session cache
# ---------------------------------------------------------------------------


class SessionCache:
    """Holds at most one session together with its expiry.

    *clock* returns the current Unix time and is only overridden in tests.
    """

    def __init__(
        self, ttl: float = SESSION_TTL, clock: Callable[[], float] = time.time
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._session: Session | None = None

    def get(self) -> Session | None:
        """Return the cached session if it has not expired yet."""
        session = self._session
        if session is not None and self._clock() < session.expires_at:
            return session
        return None

    def peek(self) -> Session | None:
        """Return the cached session even if it has expired."""
        return self._session

    def set(self, session: Session) -> Session:
        """Cache *session*, stamping it with a fresh expiry, and return it."""
        stored = dataclasses.replace(session, expires_at=self._clock() + self._ttl)
        self._session = stored
        return stored

    def invalidate(self, session: Session | None = None) -> None:
        """Forget the cached session.

        With *session*, only forget it if it is still the cached one; a
        newer login that replaced it is kept.
        """
        if session is not None and (
            self._session is None or self._session.session_id != session.session_id
        ):
            return
        self._session = None


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class Client:
    """Light control client for a single camera.

    All operations share one :class:`SessionCache`.  Logins are serialised
    with an :class:`asyncio.Lock`, so concurrent commands never race two
    handshakes against each other.

    Args:
        host: Camera address, ``host`` or ``host:port`` (``http://`` is
            assumed unless a scheme is given).
        username: Account name.
        password: Account password.
        on_status: Optional callable receiving :class:`StatusUpdate` values
            while :meth:`handle_command` runs.
        cache: Session cache to use; a new one by default.
    """

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        *,
        on_status: Callable[[StatusUpdate], None] | None = None,
        cache: SessionCache | None = None,
    ) -> None:
        self._host = host
        self._username = username
        self._password = password
        self._on_status = on_status
        self._cache = cache if cache is not None else SessionCache()
        self._auth_lock = asyncio.Lock()
        self._request_ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_saved(
        cls, *, on_status: Callable[[StatusUpdate], None] | None = None
    ) -> Client:
        """Build a client from the saved configuration file.

        Raises :class:`FileNotFoundError` if no configuration was saved.
        """
        if not CONFIG_FILE.exists():
            raise FileNotFoundError(
                f"No saved configuration at {CONFIG_FILE}. Run `dahualight configure` first."
            )
        config = json.loads(CONFIG_FILE.read_text())
        return cls(
            str(config["host"]),
            str(config["username"]),
            str(config["password"]),
            on_status=on_status,
        )

    def save_config(self) -> None:
        """Persist address and credentials to ``~/.config/dahualight/config.json``."""
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        CONFIG_FILE.write_text(
            json.dumps(
                {"host": self._host, "username": self._username, "password": self._password},
                indent=2,
            )
        )
        CONFIG_FILE.chmod(0o600)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def host(self) -> str:
        return self._host

    @property
    def username(self) -> str:
        return self._username

    @property
    def cache(self) -> SessionCache:
        """The session cache backing this client."""
        return self._cache

    @property
    def base_url(self) -> str:
        if "://" in self._host:
            return self._host.rstrip("/")
        return f"http://{self._host}"

    @property
    def rpc_url(self) -> str:
        return f"{self.base_url}{RPC_PATH}"

    @property
    def login_url(self) -> str:
        return f"{self.base_url}{LOGIN_PATH}"

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate(self) -> Session | None:
        """Return a usable session, logging in if needed.

        A cached session within its TTL is returned without any request.
        An expired one is logged out first (best effort).  Returns ``None``
        when the login fails for any reason; the cause is logged.
        """
        async with self._auth_lock:
            cached = self._cache.get()
            if cached is not None:
                _LOGGER.debug("Using cached session %s", cached.session_id)
                return cached

            async with _http_session() as http:
                stale = self._cache.peek()
                if stale is not None:
                    await self._logout(http, stale)
                    self._cache.invalidate()

                try:
                    session = await self._login(http)
                except DahuaError as e:
                    _LOGGER.error("Login to %s failed: %s", self._host, e)
                    return None

            _LOGGER.info("Logged in to %s, session %s", self._host, session.session_id)
            return self._cache.set(session)

    async def logout(self) -> None:
        """Log out the cached session, if any, and clear the cache."""
        async with self._auth_lock:
            session = self._cache.peek()
            if session is None:
                return
            async with _http_session() as http:
                await self._logout(http, session)
            self._cache.invalidate()

    async def _discard(self, session: Session, reason: Exception) -> None:
        """Drop *session* from the cache unless a newer login replaced it."""
        _LOGGER.info("%s, clearing cached session", reason)
        async with self._auth_lock:
            self._cache.invalidate(session)

    async def _login(self, http: aiohttp.ClientSession) -> Session:
        response = await self._first_login(http)
        body = _checked(response)
        if _error_code(body) == ERROR_DEVICE_BUSY:
            _LOGGER.info("%s is busy, retrying login in %ss", self._host, BUSY_RETRY_DELAY)
            await asyncio.sleep(BUSY_RETRY_DELAY)
            response = await self._first_login(http)
            body = _checked(response)
            if _error_code(body) == ERROR_DEVICE_BUSY:
                raise DeviceBusyError(f"{self._host} is still busy after one retry")

        _LOGGER.debug("First login result: %s", body)
        if body.get("result"):
            return Session(_session_id(body), response.cookies)

        challenge = _parse_challenge(body)
        if challenge is None:
            raise ProtocolError(f"Unexpected login response: {body}")
        return await self._answer_challenge(http, challenge, response.cookies)

    async def _first_login(self, http: aiohttp.ClientSession) -> RpcResponse:
        params = {"userName": self._username, "password": "", "clientType": CLIENT_TYPE}
        return await _post_rpc(http, self.login_url, self._request("global.login", params))

    async def _answer_challenge(
        self, http: aiohttp.ClientSession, challenge: LoginChallenge, cookies: str
    ) -> Session:
        _LOGGER.debug(
            "Challenge received: realm=%s, session=%s", challenge.realm, challenge.session_id
        )
        params = {
            "userName": self._username,
            "password": compute_login_hash(
                self._username, challenge.realm, challenge.random, self._password
            ),
            "clientType": CLIENT_TYPE,
            "authorityType": AUTHORITY_TYPE,
        }
        request = self._request("global.login", params, challenge.session_id)
        response = await _post_rpc(http, self.login_url, request, cookies)
        body = _checked(response)
        _LOGGER.debug("Second login result: %s", body)
        if not body.get("result"):
            raise AuthenticationError(
                f"Login rejected: {_error_message(body) or 'challenge not satisfied'}"
            )
        session_id = body.get("session", challenge.session_id)
        if session_id is None:
            raise ProtocolError(f"Login response carries no session: {body}")
        return Session(session_id, response.cookies or cookies)

    async def _logout(self, http: aiohttp.ClientSession, session: Session) -> None:
        """Fire-and-forget ``global.logout``; failures are only logged."""
        _LOGGER.info("Logging out session %s", session.session_id)
        request = self._request("global.logout", None, session.session_id)
        try:
            await _post_rpc(http, self.rpc_url, request, session.cookies)
        except DahuaError as e:
            _LOGGER.warning("Logout of session %s failed: %s", session.session_id, e)

    # ------------------------------------------------------------------
    # Lighting
    # ------------------------------------------------------------------

    async def set_light(
        self,
        session: Session,
        mode: LightMode | str,
        brightness: int = FULL_BRIGHTNESS,
    ) -> OperationResult:
        """Switch the illuminator to *mode* at *brightness* percent.

        Reads the ``Lighting_V2`` table, changes only the mode and
        brightness fields, and writes the table back.  If the camera
        rejects *session*, the cache is cleared and the result has
        ``retry_requested`` set.  Never raises for camera or network
        failures.
        """
        mode = LightMode(mode)
        _LOGGER.debug("Setting light: mode=%s, brightness=%s", mode, brightness)
        async with _http_session() as http:
            try:
                table = await self._fetch_lighting(http, session)
                _apply_light(table, mode, brightness)
                _LOGGER.debug("Modified table: %s", table)
                response = await self._write_lighting(http, session, table)
            except SessionInvalidError as e:
                await self._discard(session, e)
                return OperationResult(False, "Session error", retry_requested=True)
            except DahuaError as e:
                _LOGGER.error("Setting light on %s failed: %s", self._host, e)
                return OperationResult(False, str(e))
        return _write_result(response)

    async def get_lighting(self) -> list[Any] | None:
        """Return the raw ``Lighting_V2`` table, or ``None`` on failure."""
        session = await self.authenticate()
        if session is None:
            return None
        async with _http_session() as http:
            try:
                return await self._fetch_lighting(http, session)
            except SessionInvalidError as e:
                await self._discard(session, e)
            except DahuaError as e:
                _LOGGER.error("Reading %s from %s failed: %s", LIGHTING_CONFIG, self._host, e)
        return None

    async def _fetch_lighting(self, http: aiohttp.ClientSession, session: Session) -> list[Any]:
        request = self._request(
            "configManager.getConfig", {"name": LIGHTING_CONFIG}, session.session_id
        )
        body = _checked(await _post_rpc(http, self.rpc_url, request, session.cookies))
        _LOGGER.debug("Config data: %s", body)

        if not body.get("result"):
            code = _error_code(body)
            if code in SESSION_ERROR_CODES:
                raise SessionInvalidError(
                    f"Session {session.session_id} rejected ({code}: {_error_message(body)})"
                )
            raise ProtocolError(f"Failed to get config: {_error_message(body) or body}")

        params = body.get("params")
        table = params.get("table") if isinstance(params, dict) else None
        if not isinstance(table, list):
            raise ProtocolError(f"{LIGHTING_CONFIG} response carries no table")
        return table

    async def _write_lighting(
        self, http: aiohttp.ClientSession, session: Session, table: list[Any]
    ) -> RpcResponse:
        """Write *table* back, falling back to ``system.multicall``.

        Some firmware only accepts ``setConfig`` wrapped in a multicall, so
        a rejected plain call is repeated once in that form.
        """
        request = self._request(
            "configManager.setConfig",
            {"name": LIGHTING_CONFIG, "table": table, "options": []},
            session.session_id,
        )
        response = await _post_rpc(http, self.rpc_url, request, session.cookies)
        if _write_succeeded(response):
            return response

        _LOGGER.info("setConfig rejected (HTTP %s), trying system.multicall", response.status)
        multicall = self._request("system.multicall", [request], session.session_id)
        return await _post_rpc(http, self.rpc_url, multicall, session.cookies)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def handle_command(self, raw: object) -> OperationResult:
        """Apply one raw light command (``"on"``, ``"off"``, ``"75"``, ``"auto 60"``).

        Logs in, sets the light, and on a rejected session logs in once
        more and retries.  Progress is reported through ``on_status``.
        """
        label = "" if raw is None else str(raw).strip()

        self._status(StatusLevel.INFO, "Logging in...")
        session = await self.authenticate()
        if session is None:
            self._status(StatusLevel.ERROR, "Login failed")
            return OperationResult(False, "Failed to login")

        self._status(StatusLevel.INFO, "Setting light...")
        command = parse_command(raw)
        _LOGGER.info(
            "Command %r: mode=%s, brightness=%s", label, command.mode, command.brightness
        )
        result = await self.set_light(session, command.mode, command.brightness)

        if result.retry_requested:
            self._status(StatusLevel.WARN, "Re-login...")
            session = await self.authenticate()
            if session is None:
                result = OperationResult(False, "Failed to re-login")
            else:
                self._status(StatusLevel.WARN, "Retrying...")
                result = await self.set_light(session, command.mode, command.brightness)

        _LOGGER.debug("Final result: %s", result.to_payload())
        if result.success:
            self._status(StatusLevel.INFO, f"{label} ✓")
        else:
            self._status(StatusLevel.ERROR, f"{label} ✗")
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _request(
        self, method: str, params: object, session_id: SessionId | None = None
    ) -> dict[str, object]:
        request: dict[str, object] = {
            "method": method,
            "params": params,
            "id": next(self._request_ids),
        }
        if session_id is not None:
            request["session"] = session_id
        return request

    def _status(self, level: StatusLevel, label: str) -> None:
        if self._on_status is not None:
            self._on_status(StatusUpdate(level, label))


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


def _http_session() -> aiohttp.ClientSession:
    """Session without a cookie jar; cookies are forwarded explicitly."""
    return aiohttp.ClientSession(cookie_jar=aiohttp.DummyCookieJar())


async def _post_rpc(
    http: aiohttp.ClientSession,
    url: str,
    request: dict[str, object],
    cookies: str = "",
) -> RpcResponse:
    """POST one JSON-RPC *request* and return the decoded response.

    Does not retry or interpret the body.  Raises :class:`RequestTimeoutError`
    after :data:`REQUEST_TIMEOUT` seconds, :class:`TransportError` on
    connection failures, and :class:`ParseError` when an HTTP 200 body is
    not JSON.  Error statuses with a non-JSON body yield ``body=None``.
    """
    method = request.get("method")
    headers = {"Cookie": cookies} if cookies else {}
    _LOGGER.debug("POST %s %s", url, method)
    try:
        async with http.post(
            url,
            json=request,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT),
        ) as resp:
            status = resp.status
            raw = await resp.read()
            set_cookies = resp.headers.getall(hdrs.SET_COOKIE, [])
    except TimeoutError as e:
        raise RequestTimeoutError(f"{method} timed out after {REQUEST_TIMEOUT}s") from e
    except aiohttp.ClientError as e:
        raise TransportError(f"{method} failed: {e}") from e

    try:
        body = json.loads(raw.decode("utf-8"))
    except ValueError as e:
        if status == HTTP_OK:
            raise ParseError(f"{method} returned invalid JSON: {e}") from e
        body = None

    return RpcResponse(body=body, cookies=_cookie_header(set_cookies), status=status)


def _cookie_header(set_cookies: list[str]) -> str:
    """Collapse ``Set-Cookie`` values into a ``Cookie`` request header."""
    jar: SimpleCookie = SimpleCookie()
    for header in set_cookies:
        try:
            jar.load(header)
        except CookieError:
            _LOGGER.debug("Ignoring malformed Set-Cookie header: %s", header)
    return "; ".join(f"{name}={morsel.value}" for name, morsel in jar.items())


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _checked(response: RpcResponse) -> dict[str, Any]:
    """Return the body of an HTTP 200 response carrying a JSON object."""
    if response.status != HTTP_OK:
        raise ProtocolError(f"HTTP {response.status}")
    if not isinstance(response.body, dict):
        raise ProtocolError(f"Expected a JSON object, got: {response.body!r}")
    return response.body


def _error_code(body: object) -> int | None:
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        code = error.get("code")
        if isinstance(code, int):
            return code
    return None


def _error_message(body: dict[str, Any]) -> str | None:
    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        return str(message) if message else f"error {error.get('code')}"
    return None


def _session_id(body: dict[str, Any]) -> SessionId:
    session_id = body.get("session")
    if session_id is None:
        raise ProtocolError(f"Login response carries no session: {body}")
    return session_id


def _parse_challenge(body: dict[str, Any]) -> LoginChallenge | None:
    """Extract the login challenge, or ``None`` if *body* is not one."""
    params = body.get("params")
    if body.get("result") or not isinstance(params, dict) or "random" not in params:
        return None
    return LoginChallenge(
        realm=str(params.get("realm", "")),
        random=str(params["random"]),
        session_id=body.get("session"),
    )


def _apply_light(table: list[Any], mode: LightMode, brightness: int) -> None:
    """Set mode and brightness in the first ``Lighting_V2`` entry, in place.

    The per-zone ``MiddleLight`` level is only touched in manual mode;
    everything else in the table is left as the camera sent it.
    """
    try:
        entry = table[0][0][0]
        entry["Mode"] = mode.value
        entry["PercentOfMaxBrightness"] = brightness
        if mode is LightMode.MANUAL:
            entry["MiddleLight"][0]["Light"] = brightness
    except (LookupError, TypeError) as e:
        raise ProtocolError(f"Unexpected {LIGHTING_CONFIG} table layout: {e!r}") from e


def _write_succeeded(response: RpcResponse) -> bool:
    return (
        response.status == HTTP_OK
        and isinstance(response.body, dict)
        and bool(response.body.get("result"))
    )


def _write_result(response: RpcResponse) -> OperationResult:
    if response.status != HTTP_OK:
        return OperationResult(False, f"HTTP {response.status}")
    body = response.body if isinstance(response.body, dict) else None
    if body is not None and body.get("result"):
        return OperationResult(True, response=body)
    message = _error_message(body) if body is not None else None
    return OperationResult(False, message or "Failed to set config", response=body)
