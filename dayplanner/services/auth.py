from __future__ import annotations

import logging

from dayplanner.domain.errors import AuthenticationError

from .session import SessionState

logger = logging.getLogger(__name__)


class AuthSession:
    """Tracks who is signed in. Credentials are checked by the identity provider, not here."""

    def __init__(self, session: SessionState, user_id: str | None = None) -> None:
        self._session = session
        if user_id:
            self.sign_in(user_id)

    @property
    def user_id(self) -> str | None:
        return self._session.user_id

    def sign_in(self, user_id: str) -> str:
        user_id = (user_id or "").strip()
        if not user_id:
            raise AuthenticationError("Authentication required: please sign in")
        self._session.user_id = user_id
        logger.info("Signed in as %s", user_id)
        return user_id

    def sign_out(self) -> None:
        logger.info("Signed out %s", self._session.user_id)
        self._session.close()

    def require_user(self) -> str:
        if not self._session.user_id:
            raise AuthenticationError("Authentication required: please sign in")
        return self._session.user_id
