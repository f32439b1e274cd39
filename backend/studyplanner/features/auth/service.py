"""
Auth feature: sign-in flows, session bootstrap and user-change fan-out.

The Supabase auth client pushes session changes (SIGNED_IN, SIGNED_OUT,
TOKEN_REFRESHED...) through ``on_auth_state_change``. This service mirrors
the current user and notifies listeners, typically ``StudyStore.set_user``,
whenever the user identity changes.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from supabase import AsyncClient

from studyplanner.config import Settings
from studyplanner.core.exceptions import (
    AppBaseError,
    AuthenticationError,
    ErrorKind,
    classify_error,
    error_message,
    is_refresh_token_error,
)
from studyplanner.features.auth.session import SessionManager

logger = logging.getLogger(__name__)

UserListener = Callable[[str | None], Awaitable[None]]


class AuthService:
    """Handles sign-in/sign-out and tracks who is signed in."""

    def __init__(self, db: AsyncClient, sessions: SessionManager, settings: Settings):
        self.db = db
        self.sessions = sessions
        self.settings = settings

        self.session: Any | None = None
        self.user: Any | None = None
        self.loading = True

        self._listeners: list[UserListener] = []
        self._subscription = None
        self._pending: set[asyncio.Task] = set()

    @property
    def user_id(self) -> str | None:
        return str(self.user.id) if self.user is not None else None

    def add_user_listener(self, listener: UserListener) -> None:
        self._listeners.append(listener)

    # ── Lifecycle ────────────────────────────────────────

    async def initialize(self) -> None:
        """Pick up a persisted session and start listening for auth changes."""
        logger.info("Initializing auth...")
        try:
            session = await self.db.auth.get_session()
        except Exception as e:
            logger.error(f"Session initialization error: {e}")
            if is_refresh_token_error(e):
                await self.sessions.clear_invalid_session()
            session = None

        logger.info(f"Session state: {'found' if session else 'not found'}")
        await self._apply_session(session)
        if session is not None:
            await self._upsert_profile(session.user)
        self.loading = False

        self._subscription = self.db.auth.on_auth_state_change(self._on_auth_state_change)

    async def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    # ── Auth events ──────────────────────────────────────

    def _on_auth_state_change(self, event, session) -> None:
        """Synchronous callback from the auth client; defers to handle_auth_event."""
        task = asyncio.get_running_loop().create_task(self.handle_auth_event(event, session))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def handle_auth_event(self, event: str, session) -> None:
        event = getattr(event, "value", event)
        logger.info(f"Auth state changed: {event}")

        if event == "SIGNED_OUT":
            await self.sessions.purge_storage()
            await self._apply_session(None)
        elif session is not None:
            await self._apply_session(session)
            if event == "SIGNED_IN":
                await self._upsert_profile(session.user)

        self.loading = False

    async def _apply_session(self, session) -> None:
        previous = self.user_id
        self.session = session
        self.user = session.user if session is not None else None

        if self.user_id != previous:
            for listener in self._listeners:
                await listener(self.user_id)

    async def _upsert_profile(self, user) -> None:
        """Keep the profiles row in sync. Failures never block auth."""
        metadata = getattr(user, "user_metadata", None) or {}
        try:
            await self.db.table("profiles").upsert({
                "id": str(user.id),
                "email": user.email,
                "full_name": metadata.get("full_name") or metadata.get("name") or "",
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }).execute()
        except Exception as e:
            logger.error(f"Profile upsert error: {e}")

    # ── Sign-in flows ────────────────────────────────────

    async def sign_in(self, email: str, password: str):
        try:
            response = await self.db.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            raise self._auth_error(e, "sign in") from e

        await self._apply_session(response.session)
        return response

    async def sign_up(self, email: str, password: str):
        try:
            response = await self.db.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"email_redirect_to": self.settings.AUTH_REDIRECT_URL},
            })
        except Exception as e:
            raise self._auth_error(e, "sign up") from e

        # No session until the email is confirmed, unless confirmation is off.
        if response.session is not None:
            await self._apply_session(response.session)
        return response

    async def sign_in_with_google(self) -> str:
        """Start the Google OAuth flow and return the provider URL to open."""
        try:
            response = await self.db.auth.sign_in_with_oauth({
                "provider": "google",
                "options": {
                    "redirect_to": self.settings.AUTH_REDIRECT_URL,
                    "query_params": {"access_type": "offline", "prompt": "consent"},
                },
            })
        except Exception as e:
            raise self._auth_error(e, "start Google sign-in") from e
        return response.url

    async def sign_out(self) -> None:
        try:
            await self.db.auth.sign_out()
        except Exception as e:
            logger.error(f"Sign out error: {e}")
        await self.sessions.purge_storage()
        await self._apply_session(None)

    @staticmethod
    def _auth_error(error: Exception, operation: str) -> AppBaseError:
        classified = classify_error(error, operation)
        if classified.kind == ErrorKind.TRANSIENT and getattr(error, "status", None) in (400, 401, 422):
            return AuthenticationError(f"Failed to {operation}", detail=error_message(error))
        return classified
