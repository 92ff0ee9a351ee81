# Profile Images - Gateway Service
import logging
import uuid
from typing import Dict, Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from profile_images.config import Settings
from profile_images.errors import MalformedURL, ProfileImageError
from profile_images.pipeline import ProfileImagePipeline
from profile_images.profile_store import ProfileStore, SQLAlchemyProfileStore
from profile_images.schemas import RawImageRequest
from profile_images.storage import LocalImageStore
from profile_images.utils.http_client import close_http_client, get_http_client
from profile_images.utils.logger import get_logger
from profile_images.utils.metrics import get_metrics

SERVICE_NAME = "profile_image_gateway"


class InMemorySessionStore:
    """Maps session tokens to user ids. The real session layer lives elsewhere."""

    def __init__(self, sessions: Optional[Dict[str, str]] = None):
        self._sessions = dict(sessions or {})

    def login(self, token: str, caller_id: str):
        self._sessions[token] = caller_id

    def resolve(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        return self._sessions.get(token)


async def _read_payload(request: Request) -> dict:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise MalformedURL("Request body is not valid JSON")
        return body if isinstance(body, dict) else {}
    form = await request.form()
    return dict(form)


def create_app(
    settings: Optional[Settings] = None,
    profile_store: Optional[ProfileStore] = None,
    client: Optional[httpx.AsyncClient] = None,
    image_store: Optional[LocalImageStore] = None,
    sessions: Optional[InMemorySessionStore] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    logger = logging.getLogger(SERVICE_NAME)

    app = FastAPI(title="Profile Image Gateway", version="1.0.0")
    app.state.settings = settings
    app.state.sessions = sessions or InMemorySessionStore()

    @app.on_event("startup")
    async def startup():
        get_logger("profile_images", settings.log_level)
        get_logger(SERVICE_NAME, settings.log_level)
        app.state.owns_client = client is None
        http_client = client or get_http_client(timeout=settings.fetch_timeout)
        store = profile_store or SQLAlchemyProfileStore(settings.database_url, create_tables=True)
        app.state.http_client = http_client
        app.state.pipeline = ProfileImagePipeline(
            profile_store=store,
            client=http_client,
            image_store=image_store,
            settings=settings,
        )
        logger.info("Profile image gateway started")

    @app.on_event("shutdown")
    async def shutdown():
        if app.state.owns_client:
            await close_http_client()

    @app.exception_handler(ProfileImageError)
    async def profile_image_error_handler(request: Request, exc: ProfileImageError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "detail": exc.message},
        )

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": SERVICE_NAME}

    @app.get("/metrics")
    async def metrics():
        return get_metrics()

    @app.post("/profile/image/url")
    async def profile_image_url_upload(request: Request):
        payload = await _read_payload(request)
        image_url = payload.get("imageUrl")
        if image_url is not None:
            if not isinstance(image_url, str):
                raise MalformedURL()
            caller_id = app.state.sessions.resolve(request.cookies.get("token"))
            correlation_id = str(uuid.uuid4())
            if caller_id is None:
                client_host = request.client.host if request.client else "unknown"
                logger.warning("Blocked profile image request without session", extra={
                    "remote_address": client_host,
                    "correlation_id": correlation_id,
                })
            await app.state.pipeline.run(
                RawImageRequest(url=image_url, caller_id=caller_id),
                correlation_id=correlation_id,
            )
        return RedirectResponse(f"{settings.base_path}/profile", status_code=302)

    return app


load_dotenv()
app = create_app()
