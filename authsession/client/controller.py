"""
Client Session Controller
=========================

Keeps one client's session alive without asking the user to log in again.

State machine::

    UNINITIALIZED -> HYDRATING -> AUTHENTICATED | ANONYMOUS
    AUTHENTICATED -> (timer tick) REFRESHING -> AUTHENTICATED | ANONYMOUS

The controller is cooperative and single-threaded: all methods must run on
one asyncio event loop. The refresh timer is an ``asyncio.Task`` owned by
the instance and cancelled on logout and on ``close()``. A generation
counter is bumped whenever the session is replaced or cleared; a refresh
that completes under an older generation is discarded, so a refresh in
flight during logout can never bring the cleared session back.

Only the user and the refresh token are persisted. The access token lives
in memory only.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..config import Settings
from .storage import REFRESH_TOKEN_KEY, USER_KEY, MemorySessionStorage, SessionStorage
from .transport import SessionTransport

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    HYDRATING = "hydrating"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"
    REFRESHING = "refreshing"


@dataclass
class ClientSession:
    user: Optional[Dict[str, Any]] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    is_loading: bool = False

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user) and bool(self.access_token)


class SessionController:
    """
    Holds the current session and refreshes its access token on a timer.

    Args:
        transport: Client for the session endpoints
        storage: Where the user and refresh token are persisted
        refresh_interval: Time between automatic refreshes
        access_token_ttl: Server access token lifetime; the interval must be
            strictly shorter
        on_change: Optional callback receiving each new state
    """

    def __init__(
        self,
        transport: SessionTransport,
        storage: Optional[SessionStorage] = None,
        refresh_interval: timedelta = timedelta(minutes=14),
        access_token_ttl: timedelta = timedelta(minutes=15),
        on_change: Optional[Callable[[SessionState], None]] = None,
    ):
        if refresh_interval <= timedelta(0):
            raise ValueError("refresh_interval must be positive")
        if refresh_interval >= access_token_ttl:
            raise ValueError("refresh_interval must be shorter than the access token lifetime")

        self._transport = transport
        self._storage = storage if storage is not None else MemorySessionStorage()
        self._interval = refresh_interval.total_seconds()
        self._on_change = on_change

        self._state = SessionState.UNINITIALIZED
        self._session = ClientSession()
        self._generation = 0
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Future] = None
        self._inflight_generation = 0
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        storage: Optional[SessionStorage] = None,
        transport: Optional[SessionTransport] = None,
        on_change: Optional[Callable[[SessionState], None]] = None,
    ) -> "SessionController":
        transport = transport or SessionTransport(
            settings.CLIENT_BASE_URL,
            timeout=settings.CLIENT_TIMEOUT_SECONDS,
        )
        return cls(
            transport,
            storage=storage,
            refresh_interval=settings.client_refresh_interval,
            access_token_ttl=settings.access_token_ttl,
            on_change=on_change,
        )

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._session.user

    @property
    def access_token(self) -> Optional[str]:
        return self._session.access_token

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def is_loading(self) -> bool:
        return self._session.is_loading

    def has_role(self, role: str) -> bool:
        """True once authenticated as a user whose cached role equals ``role``."""
        if self._session.is_loading or not self._session.is_authenticated:
            return False
        required = getattr(role, "value", role)
        return bool(required) and self._session.user.get("role") == required

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def auth_header(self) -> Optional[str]:
        """Authorization header value for protected calls, if authenticated."""
        if not self._session.access_token:
            return None
        return f"Bearer {self._session.access_token}"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> SessionState:
        """
        Restore a persisted session, if any.

        With a stored user and refresh token the controller hydrates by
        refreshing once; on failure all local state is cleared.
        """
        if self._state is not SessionState.UNINITIALIZED:
            return self._state

        stored = self._storage.load()
        user = stored.get(USER_KEY)
        refresh_token = stored.get(REFRESH_TOKEN_KEY)

        if not user or not refresh_token:
            self._set_state(SessionState.ANONYMOUS)
            return self._state

        self._session = ClientSession(user=user, refresh_token=refresh_token, is_loading=True)
        self._set_state(SessionState.HYDRATING)
        try:
            await self.refresh()
        finally:
            self._session.is_loading = False
        return self._state

    async def close(self) -> None:
        """Tear down: disarm the timer, drop in-flight work, close the transport."""
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        self._disarm_timer()
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None
        if self._state in (SessionState.HYDRATING, SessionState.REFRESHING):
            settled = SessionState.AUTHENTICATED if self._session.is_authenticated else SessionState.ANONYMOUS
            self._set_state(settled)
        await self._transport.aclose()

    async def __aenter__(self) -> "SessionController":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # =========================================================================
    # User Actions
    # =========================================================================

    async def register(self, name: str, email: str, password: str) -> bool:
        """Create an account. The session is unchanged; the user logs in next."""
        self._session.is_loading = True
        try:
            data = await self._transport.register(name, email, password)
        finally:
            self._session.is_loading = False

        if data.get("success") and data.get("user"):
            logger.info("Registration successful")
            return True
        logger.info(f"Registration failed: {data.get('message')}")
        return False

    async def login(self, email: str, password: str) -> bool:
        self._session.is_loading = True
        try:
            data = await self._transport.login(email, password)
        finally:
            self._session.is_loading = False

        user = data.get("user")
        access_token = data.get("accessToken")
        refresh_token = data.get("refreshToken")
        if not (data.get("success") and user and access_token and refresh_token):
            logger.info(f"Login failed: {data.get('message')}")
            return False

        # Supersede any refresh still running for a previous session
        self._generation += 1
        self._session = ClientSession(
            user=user,
            access_token=access_token,
            refresh_token=refresh_token,
        )
        self._storage.save(user, refresh_token)
        self._set_state(SessionState.AUTHENTICATED)
        self._arm_timer()
        logger.info("Login successful", extra={"user_id": user.get("id")})
        return True

    async def logout(self) -> None:
        """
        Clear the session locally and revoke the refresh token on the server.

        Local state is cleared even if the server call fails.
        """
        refresh_token = self._session.refresh_token
        self._clear()

        if not refresh_token:
            return
        data = await self._transport.logout(refresh_token)
        if not data.get("success"):
            logger.warning(f"Server logout failed: {data.get('message')}")

    async def refresh(self) -> bool:
        """
        Refresh the access token now.

        Concurrent callers for the same session share one in-flight request.
        Returns False if the request is dropped by ``close()``.
        """
        if not self._session.refresh_token or self._closed:
            return False
        inflight = self._inflight
        if inflight is None or inflight.done() or self._inflight_generation != self._generation:
            self._inflight_generation = self._generation
            inflight = asyncio.ensure_future(self._refresh_and_settle(self._generation))
            self._inflight = inflight
        try:
            return await asyncio.shield(inflight)
        except asyncio.CancelledError:
            # Only swallow the cancellation close() applied to the shared request
            if inflight.cancelled():
                return False
            raise

    async def fetch_profile(self) -> Optional[Dict[str, Any]]:
        """Fetch the current user's profile with the in-memory access token."""
        header = self.auth_header()
        if header is None:
            return None
        data = await self._transport.get_profile(header)
        if data.get("success"):
            return data.get("user")
        return None

    # =========================================================================
    # Refresh Internals
    # =========================================================================

    async def _refresh_and_settle(self, generation: int) -> bool:
        if generation != self._generation:
            return False
        refresh_token = self._session.refresh_token
        if self._state is SessionState.AUTHENTICATED:
            self._set_state(SessionState.REFRESHING)

        data = await self._transport.refresh(refresh_token)

        if generation != self._generation:
            logger.debug("Discarding refresh result for a superseded session")
            return False

        access_token = data.get("accessToken")
        if not (data.get("success") and access_token):
            logger.info(f"Session refresh failed: {data.get('message')}")
            self._clear()
            return False

        self._session.access_token = access_token
        rotated = data.get("refreshToken")
        if rotated and rotated != refresh_token:
            self._session.refresh_token = rotated
            self._storage.save(self._session.user, rotated)

        self._set_state(SessionState.AUTHENTICATED)
        if not self.timer_armed:
            self._arm_timer()
        return True

    async def _refresh_loop(self, generation: int) -> None:
        try:
            while generation == self._generation:
                await asyncio.sleep(self._interval)
                if generation != self._generation:
                    break
                if not await self.refresh():
                    break
        except asyncio.CancelledError:
            pass

    def _arm_timer(self) -> None:
        self._disarm_timer()
        if self._closed:
            return
        self._timer = asyncio.create_task(self._refresh_loop(self._generation))

    def _disarm_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

    def _clear(self) -> None:
        self._generation += 1
        self._disarm_timer()
        self._session = ClientSession()
        self._storage.clear()
        self._set_state(SessionState.ANONYMOUS)

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        logger.debug(f"Session state {self._state.value} -> {state.value}")
        self._state = state
        if self._on_change is not None:
            try:
                self._on_change(state)
            except Exception:
                logger.exception("Session state callback failed")


__all__ = ["SessionState", "ClientSession", "SessionController"]
