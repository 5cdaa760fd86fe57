"""Utilities for communicating with the Discogs API."""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable
from urllib.parse import quote

import httpx

from ..config import Settings
from ..models import CatalogItem, ReleaseDetails
from ..utils import as_int

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class DiscogsError(RuntimeError):
    """Raised when Discogs cannot serve a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DiscogsAuthError(DiscogsError):
    """Discogs rejected the supplied OAuth credentials."""


class CredentialsNotConfigured(RuntimeError):
    """The consumer key/secret pair is missing from the configuration."""


class NotAuthenticated(RuntimeError):
    """An authenticated operation was attempted without a user session."""


@dataclass(slots=True, frozen=True)
class OAuthCredentials:
    """Access token pair issued to a signed-in user."""

    access_token: str
    access_token_secret: str


@dataclass(slots=True)
class CollectionPage:
    """One page of collection releases and the total Discogs reports."""

    items: list[CatalogItem] = field(default_factory=list)
    total: int = 0


class DiscogsClient:
    """Thin wrapper around the Discogs HTTP API."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._client = http_client
        self._max_retries = settings.discogs_max_retries
        self._sleep = sleep

    def _headers(self, credentials: OAuthCredentials | None = None) -> dict[str, str]:
        consumer_key = self._settings.discogs_consumer_key
        consumer_secret = self._settings.discogs_consumer_secret
        if not (consumer_key and consumer_secret):
            raise CredentialsNotConfigured("Discogs credentials not configured")

        headers = {
            "Accept": "application/vnd.discogs.v2.discogs+json",
            "User-Agent": self._settings.user_agent,
        }
        if credentials is None:
            headers["Authorization"] = f"Discogs key={consumer_key}, secret={consumer_secret}"
            return headers

        oauth_params = {
            "oauth_consumer_key": consumer_key,
            "oauth_nonce": secrets.token_hex(16),
            "oauth_token": credentials.access_token,
            "oauth_signature": f"{consumer_secret}&{credentials.access_token_secret}",
            "oauth_signature_method": "PLAINTEXT",
            "oauth_timestamp": str(int(time.time())),
            "oauth_version": "1.0",
        }
        headers["Authorization"] = "OAuth " + ", ".join(
            f'{key}="{value}"' for key, value in oauth_params.items()
        )
        return headers

    @staticmethod
    def _backoff(attempt: int) -> float:
        return min(2 ** (attempt - 1), 5) + (0.1 * attempt)

    async def _get_json(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        credentials: OAuthCredentials | None = None,
    ) -> dict[str, Any]:
        # Retry on transient errors (timeouts, rate limiting, 5xx)
        attempt = 0
        while True:
            # Fresh nonce and timestamp for every attempt
            headers = self._headers(credentials)
            try:
                response = await self._client.get(path, headers=headers, params=params)
            except httpx.HTTPError as exc:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = self._backoff(attempt)
                    logger.info(
                        "Transient error talking to Discogs (%s). Retrying %s in %.1fs",
                        exc.__class__.__name__,
                        path,
                        backoff,
                    )
                    await self._sleep(backoff)
                    continue
                raise DiscogsError(f"Discogs request to {path} failed: {exc}") from exc

            if response.status_code == 429 or 500 <= response.status_code < 600:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = self._backoff(attempt)
                    logger.info(
                        "Discogs returned %s for %s. Retrying in %.1fs",
                        response.status_code,
                        path,
                        backoff,
                    )
                    await self._sleep(backoff)
                    continue
                raise DiscogsError(
                    f"Discogs request to {path} failed with {response.status_code}",
                    status_code=response.status_code,
                )
            break

        # 401 on a session token is an auth failure; 403 marks a private resource.
        if response.status_code == 401 and credentials is not None:
            raise DiscogsAuthError(
                f"Discogs rejected credentials for {path}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise DiscogsError(
                f"Discogs request to {path} failed with {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise DiscogsError(f"Unexpected non-JSON Discogs response for {path}") from exc
        if not isinstance(data, dict):
            raise DiscogsError(f"Unexpected Discogs response structure for {path}")
        return data

    async def get_release(
        self,
        release_id: int,
        *,
        credentials: OAuthCredentials | None = None,
    ) -> ReleaseDetails:
        """Fetch the country and year of a single release."""

        data = await self._get_json(f"/releases/{int(release_id)}", credentials=credentials)
        country = data.get("country")
        if not isinstance(country, str) or not country.strip():
            country = None
        year = as_int(data.get("year"))
        return ReleaseDetails(
            id=as_int(data.get("id"), default=int(release_id)),
            country=country.strip() if country else None,
            year=year or None,
        )

    async def get_collection(
        self,
        username: str,
        *,
        folder: int = 0,
        page: int = 1,
        per_page: int = 100,
        credentials: OAuthCredentials | None = None,
    ) -> CollectionPage:
        """Fetch one page of a collection folder, private entries included."""

        return await self._collection_page(
            username, folder=folder, page=page, per_page=per_page, credentials=credentials
        )

    async def get_public_collection(
        self,
        username: str,
        *,
        page: int = 1,
        per_page: int = 100,
    ) -> CollectionPage:
        """Fetch one page of a collection using only the consumer key."""

        return await self._collection_page(username, folder=0, page=page, per_page=per_page)

    async def _collection_page(
        self,
        username: str,
        *,
        folder: int,
        page: int,
        per_page: int,
        credentials: OAuthCredentials | None = None,
    ) -> CollectionPage:
        path = f"/users/{quote(username, safe='')}/collection/folders/{folder}/releases"
        params = {"page": page, "per_page": max(1, min(per_page, 100))}
        data = await self._get_json(path, params=params, credentials=credentials)

        raw_releases = data.get("releases") or []
        items = [
            CatalogItem.from_collection_entry(entry)
            for entry in raw_releases
            if isinstance(entry, dict)
        ]
        pagination = data.get("pagination")
        if not isinstance(pagination, dict):
            pagination = {}
        total = as_int(pagination.get("items"), default=len(items))
        return CollectionPage(items=items, total=max(total, 0))

    async def search(
        self,
        query: str,
        *,
        search_type: str = "master",
        credentials: OAuthCredentials | None = None,
    ) -> list[dict[str, Any]]:
        """Search the Discogs database, returning the raw result entries."""

        data = await self._get_json(
            "/database/search",
            params={"q": query, "type": search_type},
            credentials=credentials,
        )
        results = data.get("results") or []
        if not isinstance(results, list):
            logger.warning("Unexpected Discogs search structure for %s", query)
            return []
        return [entry for entry in results if isinstance(entry, dict)]

    async def get_wantlist(
        self,
        username: str,
        *,
        credentials: OAuthCredentials | None = None,
    ) -> list[CatalogItem]:
        """Fetch the first page of a user's wantlist."""

        data = await self._get_json(
            f"/users/{quote(username, safe='')}/wants",
            params={"page": 1, "per_page": 100},
            credentials=credentials,
        )
        wants = data.get("wants") or []
        if not isinstance(wants, list):
            return []
        return [CatalogItem.from_collection_entry(entry) for entry in wants if isinstance(entry, dict)]
