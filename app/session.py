"""Read-only access to the Discogs session carried in request cookies."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from .services.discogs import NotAuthenticated, OAuthCredentials

ACCESS_TOKEN_COOKIE = "discogs_access_token"
ACCESS_TOKEN_SECRET_COOKIE = "discogs_access_token_secret"
USERNAME_COOKIE = "discogs_username"


@dataclass(slots=True, frozen=True)
class Session:
    username: str | None = None
    credentials: OAuthCredentials | None = None

    @property
    def authenticated(self) -> bool:
        return self.credentials is not None

    def require_credentials(self) -> OAuthCredentials:
        if self.credentials is None:
            raise NotAuthenticated("Not authenticated")
        return self.credentials


def read_session(request: Request) -> Session:
    """Return the signed-in user's token pair, if both cookies are present."""

    token = (request.cookies.get(ACCESS_TOKEN_COOKIE) or "").strip()
    secret = (request.cookies.get(ACCESS_TOKEN_SECRET_COOKIE) or "").strip()
    username = (request.cookies.get(USERNAME_COOKIE) or "").strip() or None
    credentials = OAuthCredentials(token, secret) if token and secret else None
    return Session(username=username, credentials=credentials)
