"""
Auth feature: session validity and refresh handling around the Supabase auth client.

States, per process:
  Unknown → Valid | ExpiredRefreshable | Absent
  ExpiredRefreshable → Valid (refresh ok) | Invalid (refresh token rejected)
  Invalid → clear_invalid_session() → Absent
  Absent stays Absent until a new sign-in.

Only one refresh is ever in flight. Concurrent callers share its outcome.
"""

import asyncio
import logging
import time
from typing import Any, Callable, NamedTuple

from jose import jwt, JWTError
from supabase import AsyncClient

from studyplanner.core.exceptions import is_refresh_token_error

logger = logging.getLogger(__name__)


class SessionResult(NamedTuple):
    session: Any | None
    error: BaseException | None


class SessionManager:
    """Single source of truth for "is there a usable session right now"."""

    def __init__(
        self,
        db: AsyncClient,
        stores: list | None = None,
        key_prefix: str = "supabase.auth",
        skew_seconds: int = 30,
        clock: Callable[[], float] = time.time,
    ):
        self.db = db
        self.stores = stores or []
        self.key_prefix = key_prefix
        self.skew_seconds = skew_seconds
        self._clock = clock
        self._refresh_task: asyncio.Task | None = None

    # ── Token inspection ─────────────────────────────────

    def is_token_expired(self, token: str | None) -> bool:
        """True if the access token expires within the skew window.

        Unparsable tokens count as expired.
        """
        if not token:
            return True
        try:
            claims = jwt.get_unverified_claims(token)
            expires_at = claims["exp"]
            if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
                raise TypeError(f"exp is not numeric: {expires_at!r}")
        except (JWTError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Could not parse access token: {e}")
            return True

        now = int(self._clock())
        return expires_at < now + self.skew_seconds

    @staticmethod
    def is_refresh_token_error(error: object) -> bool:
        return is_refresh_token_error(error)

    # ── Session access ───────────────────────────────────

    async def get_valid_session(self) -> SessionResult:
        """Current session, refreshed first if its access token is expiring."""
        try:
            session = await self.db.auth.get_session()
        except Exception as e:
            if self.is_refresh_token_error(e):
                logger.warning(f"Stored session rejected: {e}")
                await self.clear_invalid_session()
            else:
                logger.error(f"Get valid session failed: {e}")
            return SessionResult(None, e)

        if session is not None and self.is_token_expired(session.access_token):
            logger.info("Access token expired, attempting refresh...")
            return await self.refresh_session()

        return SessionResult(session, None)

    async def validate_session(self) -> bool:
        """True iff a session currently exists."""
        try:
            session = await self.db.auth.get_session()
        except Exception as e:
            if self.is_refresh_token_error(e):
                await self.clear_invalid_session()
            else:
                logger.error(f"Session validation failed: {e}")
            return False
        return session is not None

    async def refresh_session(self) -> SessionResult:
        """Refresh the session, joining an attempt already in flight."""
        if self._refresh_task is None:
            self._refresh_task = asyncio.ensure_future(self._perform_refresh())
            self._refresh_task.add_done_callback(self._refresh_settled)
        # Shielded: a cancelled caller must not cancel the shared attempt.
        return await asyncio.shield(self._refresh_task)

    def _refresh_settled(self, task: asyncio.Task) -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _perform_refresh(self) -> SessionResult:
        try:
            response = await self.db.auth.refresh_session()
        except Exception as e:
            logger.error(f"Session refresh failed: {e}")
            if self.is_refresh_token_error(e):
                await self.clear_invalid_session()
            return SessionResult(None, e)

        session = getattr(response, "session", None)
        if session is None:
            logger.warning("Session refresh returned no session")
        return SessionResult(session, None)

    # ── Invalidation ─────────────────────────────────────

    async def purge_storage(self) -> int:
        """Remove every persisted key under the session prefix. Returns count removed."""
        removed = 0
        for store in self.stores:
            try:
                keys = [k for k in await store.keys() if k.startswith(self.key_prefix)]
                for key in keys:
                    await store.remove_item(key)
                    removed += 1
            except Exception as e:
                logger.error(f"Error clearing session storage {type(store).__name__}: {e}")
        return removed

    async def clear_invalid_session(self) -> None:
        """Purge local session artifacts and force a sign-out. Never raises."""
        logger.info("Clearing invalid session data...")
        removed = await self.purge_storage()
        logger.debug(f"Removed {removed} session key(s)")

        try:
            await self.db.auth.sign_out()
        except Exception as e:
            logger.error(f"Forced sign-out failed: {e}")
