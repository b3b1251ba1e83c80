import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from rebbit import __version__
from rebbit.config import DEFAULT_JWT_SECRET, Settings
from rebbit.database import build_engine, build_session_factory
from rebbit.errors import install_exception_handlers
from rebbit.mailer import Mailer
from rebbit.middleware import RequestLogMiddleware
from rebbit.routers import admin, auth, comments, mylist, posts, upload, users
from rebbit.security import CredentialService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    if app.state.settings.JWT_SECRET == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is not set; tokens are signed with the placeholder secret")
    logger.info("Rebbit API %s starting", __version__)
    yield
    # Shutdown
    await app.state.engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application.

    ``settings`` is read once here and every collaborator (engine, session
    factory, credential service, mailer) is built from it and parked on
    ``app.state`` for the request dependencies to hand out.
    """
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Rebbit API",
        description="Discussion forum backend: posts, comments, upvotes, saved lists",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.session_factory = build_session_factory(app.state.engine)
    app.state.credentials = CredentialService(settings)
    app.state.mailer = Mailer(settings)

    # Middleware
    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_exception_handlers(app)

    # Routers
    app.include_router(auth.router)
    app.include_router(admin.router)
    app.include_router(users.router)
    app.include_router(posts.router)
    app.include_router(comments.router)
    app.include_router(mylist.router)
    app.include_router(upload.router)

    # Uploaded images, read-only
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

    @app.get("/health")
    async def health():
        return {"status": "healthy", "version": __version__}

    return app
