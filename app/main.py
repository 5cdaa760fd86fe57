"""Entry point for the FastAPI-powered collection analytics API."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .models import (
    CatalogItem,
    CollectionBatch,
    CompareRequest,
    CountryDistribution,
    CountryRequest,
    FriendComparison,
    RecommendationRequest,
    RecommendationResponse,
    ReleaseDetails,
)
from .services.analytics import CollectionAnalyticsService
from .services.discogs import (
    CredentialsNotConfigured,
    DiscogsAuthError,
    DiscogsClient,
    DiscogsError,
    NotAuthenticated,
)
from .session import read_session

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    discogs_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.discogs_api_url),
            timeout=httpx.Timeout(settings.discogs_timeout_seconds, connect=10.0),
        )
    )
    discogs = DiscogsClient(settings, discogs_http_client)
    fastapi_app.state.analytics_service = CollectionAnalyticsService(settings, discogs)
    if not settings.has_consumer_credentials:
        logger.warning("DISCOGS_CONSUMER_KEY/SECRET missing; API requests will fail")

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Discogs collection analytics: genre gaps, overlap and trades",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_analytics_service(app: FastAPI) -> CollectionAnalyticsService:
    service = getattr(app.state, "analytics_service", None)
    if not isinstance(service, CollectionAnalyticsService):
        raise RuntimeError("Analytics service not initialised")
    return service


def _http_error(exc: Exception, fallback: str) -> HTTPException:
    """Map engine failures onto HTTP responses."""

    if isinstance(exc, CredentialsNotConfigured):
        return HTTPException(status_code=500, detail="Discogs credentials not configured")
    if isinstance(exc, (NotAuthenticated, DiscogsAuthError)):
        return HTTPException(status_code=401, detail="Not authenticated")
    if isinstance(exc, DiscogsError):
        if exc.status_code == 404:
            return HTTPException(status_code=404, detail="Not found on Discogs")
        if exc.status_code == 403:
            return HTTPException(status_code=403, detail="This resource is private on Discogs")
        logger.warning("%s: %s", fallback, exc)
        return HTTPException(status_code=502, detail=fallback)
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=fallback)


ENGINE_ERRORS = (CredentialsNotConfigured, NotAuthenticated, DiscogsError, ValueError)


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/collection", response_model=CollectionBatch)
    async def collection(request: Request, username: str = "") -> CollectionBatch:
        service = get_analytics_service(fastapi_app)
        username = username.strip()
        try:
            service.ensure_configured()
            if not username:
                raise ValueError("Username is required")
            session = read_session(request)
            return await service.fetch_collection(
                username, credentials=session.credentials
            )
        except ENGINE_ERRORS as exc:
            raise _http_error(exc, "Failed to fetch collection") from exc

    @fastapi_app.get("/api/wantlist/{username}")
    async def wantlist(request: Request, username: str) -> dict[str, Any]:
        service = get_analytics_service(fastapi_app)
        try:
            service.ensure_configured()
            session = read_session(request)
            wants: list[CatalogItem] = await service.fetch_wantlist(
                username, credentials=session.credentials
            )
        except ENGINE_ERRORS as exc:
            raise _http_error(exc, "Failed to fetch wantlist") from exc
        return {"wants": [want.model_dump(by_alias=True, mode="json") for want in wants]}

    @fastapi_app.post("/api/recommendations", response_model=RecommendationResponse)
    async def recommendations(
        request: Request, payload: RecommendationRequest
    ) -> RecommendationResponse:
        service = get_analytics_service(fastapi_app)
        try:
            service.ensure_configured()
            session = read_session(request)
            credentials = session.require_credentials()
            return await service.analyze_recommendations(
                payload.genres,
                payload.owned_master_ids,
                credentials=credentials,
                username=session.username,
            )
        except ENGINE_ERRORS as exc:
            raise _http_error(exc, "Failed to generate recommendations") from exc

    @fastapi_app.post("/api/compare", response_model=FriendComparison)
    async def compare(request: Request, payload: CompareRequest) -> FriendComparison:
        service = get_analytics_service(fastapi_app)
        try:
            service.ensure_configured()
            session = read_session(request)
            username = (payload.username or session.username or "").strip()
            if not username:
                raise NotAuthenticated("Not authenticated")
            return await service.compare_with_friend(
                username,
                payload.friend_username,
                credentials=session.credentials,
            )
        except ENGINE_ERRORS as exc:
            raise _http_error(exc, "Failed to compare collections") from exc

    @fastapi_app.get("/api/release/{release_id}", response_model=ReleaseDetails)
    async def release(request: Request, release_id: str) -> ReleaseDetails:
        service = get_analytics_service(fastapi_app)
        try:
            parsed_id = int(release_id)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid release ID") from exc
        try:
            service.ensure_configured()
            credentials = read_session(request).require_credentials()
            return await service.release_details(parsed_id, credentials=credentials)
        except ENGINE_ERRORS as exc:
            raise _http_error(exc, "Failed to fetch release") from exc

    @fastapi_app.post("/api/countries", response_model=CountryDistribution)
    async def countries(request: Request, payload: CountryRequest) -> CountryDistribution:
        service = get_analytics_service(fastapi_app)
        try:
            service.ensure_configured()
            credentials = read_session(request).require_credentials()
            return await service.country_distribution(
                payload.release_ids, credentials=credentials
            )
        except ENGINE_ERRORS as exc:
            raise _http_error(exc, "Failed to fetch release countries") from exc


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
