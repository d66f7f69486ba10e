from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .config import get_settings
from fastapi import APIRouter
import uvicorn

# API routers
from .api.v1.providers import router as providers_router
from .api.v1.chat import router as chat_router
from .core.logging import setup_logging

__version__ = "0.1.0"


def create_app() -> FastAPI:
    settings = get_settings()
    # Setup logging early
    setup_logging(settings.log_level)
    app = FastAPI(title="ChatRelay Server", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(o).rstrip("/") for o in settings.allowed_origins],
        allow_origin_regex=r"https?://(localhost|127\.0\.0\.1):3000",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount API v1
    api_v1 = APIRouter()
    api_v1.include_router(providers_router, prefix="/v1")
    api_v1.include_router(chat_router, prefix="/v1")
    app.include_router(api_v1, prefix="/api")

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.get("/")
    def root():
        return {"service": "chatrelay", "version": __version__}

    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run("chatrelay.main:app", host="0.0.0.0", port=settings.server_port)
