import logging
import random
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes.health import router as health_router
from api.db.session import init_engine, get_sessionmaker, get_db
from api.routes.quiz import router as quiz_router
from api.routes.user import router as user_router
from api.routes.recommend import router as recommend_router
from api.routes.rating import router as rating_router
from api.config import RECOMMENDATION_SEED, TMDB_API_KEY
from api.core.catalog import TMDBCatalog
from api.core.scoring_tables import get_scoring_tables
from etl.tmdb_client import TMDBClient

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logging.getLogger("api.core.engine").setLevel(logging.DEBUG)
# Reduce noise from other modules
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.INFO)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    _initialise_application(app)
    if getattr(app.state, "catalog", None) is None and TMDB_API_KEY:
        app.state.catalog = TMDBCatalog(TMDBClient(TMDB_API_KEY))
    if getattr(app.state, "catalog", None) is None:
        logger.warning("TMDB_API_KEY is not set; recommendations use the default works.")
    yield
    catalog = getattr(app.state, "catalog", None)
    if isinstance(catalog, TMDBCatalog):
        await catalog.aclose()
        app.state.catalog = None


app = FastAPI(title="CineMood", version="0.1.0", lifespan=app_lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routes
app.include_router(health_router, prefix="")
app.include_router(quiz_router)
app.include_router(user_router)
app.include_router(recommend_router)
app.include_router(rating_router)


def _initialise_application(app: FastAPI) -> None:
    # Scoring tables are validated once at startup; a broken table fails fast.
    app.state.tables = get_scoring_tables()
    if not hasattr(app.state, "rng") or app.state.rng is None:
        app.state.rng = (
            random.Random(RECOMMENDATION_SEED) if RECOMMENDATION_SEED else random.Random()
        )
    if not hasattr(app.state, "catalog"):
        app.state.catalog = None
    # When tests override get_db we skip touching the real database.
    if get_db in app.dependency_overrides:
        return
    init_engine()
    # Ensure we can get a sessionmaker without error
    get_sessionmaker()


def on_startup() -> None:
    """Initialise state outside the ASGI lifespan (scripts, tests)."""
    _initialise_application(app)
