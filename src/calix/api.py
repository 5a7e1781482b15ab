from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
import logging

from calix.config import Settings
from calix.clients.mint_client import MintClient
from calix.logic.app_service import router as app_router
from calix.logic.errors import CalixError, UpstreamFailure
from calix.logic.identity import attach_issued_cookie
from calix.logic.store import UserStore

logger = logging.getLogger(__name__)


def _connect_store(settings: Settings) -> Optional[UserStore]:
    if not settings.use_mongodb:
        logger.warning("MONGODB_URI not set - data sync, wallets and achievements are unavailable.")
        return None
    store = UserStore(settings.mongodb_uri, settings.mongodb_db, settings.mongodb_timeout_ms)
    try:
        store.connect()
    except UpstreamFailure:
        # Not fatal: routes needing the store answer 503 until restart.
        return None
    return store


def _build_mint_client(settings: Settings) -> Optional[MintClient]:
    if not settings.use_minting:
        logger.warning("MINT_API_URL not set - achievement minting will be unavailable.")
        return None
    return MintClient(settings.mint_api_url, settings.mint_api_key, settings.mint_timeout_seconds)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[UserStore] = None,
    mint_client: Optional[MintClient] = None,
) -> FastAPI:
    """
    Build the API. Collaborators passed in are used as-is and never closed here;
    otherwise they are created from settings, the store during startup.
    """
    settings = settings or Settings.from_env()
    owns_store = store is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if owns_store:
            app.state.store = _connect_store(settings)
        try:
            yield
        finally:
            if owns_store and app.state.store is not None:
                app.state.store.close()
                app.state.store = None

    app = FastAPI(
        title="Calix API",
        description="Diet and activity sync with achievements and wallet-linked minting",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.mint_client = mint_client if mint_client is not None else _build_mint_client(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- EXCEPTION HANDLERS ---
    @app.exception_handler(CalixError)
    async def calix_error_handler(request: Request, exc: CalixError):
        response = JSONResponse(status_code=exc.status_code, content=exc.to_dict())
        attach_issued_cookie(request, response)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
            for err in exc.errors()
        )
        response = JSONResponse(status_code=400, content={"error": problems or "Invalid request.", "code": "ValidationFailure"})
        attach_issued_cookie(request, response)
        return response

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error", "code": "InternalError"})

    app.include_router(app_router)

    @app.get("/")
    def root():
        return {
            "message": "Welcome to the Calix API",
            "endpoints": {
                "data": "/api/data",
                "achievements": "/api/achievements",
                "wallet": "/api/wallet/link",
                "health": "/api/health",
            }
        }

    return app


settings = Settings.from_env()
logging.basicConfig(level=settings.log_level)
app = create_app(settings)
