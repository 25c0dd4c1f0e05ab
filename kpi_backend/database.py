from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from kpi_backend.core.config import settings

DATABASE_URL = settings.database_url


def _engine_options(url: str) -> dict:
    # SQLite connections are shared across the threadpool FastAPI runs sync endpoints in
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {}


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    One session per request. Services own the commit/rollback of their
    unit of work; this only guarantees the session is closed.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create the review schema. Called once from the application lifespan."""
    import kpi_backend.models  # noqa: F401  registers every table on Base.metadata
    Base.metadata.create_all(bind=engine)
