"""
Auth session access.

Token storage belongs to the host application; the engine only needs to
read the current bearer token and the ids it was issued for.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from dispatch_engine.config import Settings, settings as default_settings
from dispatch_engine.exceptions import MissingAuthToken


@dataclass(frozen=True)
class AuthSession:
    token: Optional[str] = None
    user_id: Optional[int] = None
    rider_id: Optional[int] = None

    def require_token(self) -> str:
        if not self.token:
            raise MissingAuthToken("Not logged in: no auth token in session")
        return self.token

    def require_user_id(self) -> int:
        if self.user_id is None:
            raise MissingAuthToken("Not logged in: no user id in session")
        return self.user_id

    def require_rider_id(self) -> int:
        if self.rider_id is None:
            raise MissingAuthToken("Not logged in as a rider")
        return self.rider_id


class SessionStore(ABC):
    @abstractmethod
    async def load(self) -> AuthSession: ...


class StaticSessionStore(SessionStore):
    """Holds a session handed over by the host application."""

    def __init__(self, session: AuthSession):
        self.session = session

    @classmethod
    def from_settings(cls, cfg: Settings = default_settings) -> "StaticSessionStore":
        return cls(
            AuthSession(token=cfg.auth_token, user_id=cfg.user_id, rider_id=cfg.rider_id)
        )

    async def load(self) -> AuthSession:
        return self.session
