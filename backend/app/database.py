from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from app.config import settings


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        # Analysis workers write from background threads.
        return {"check_same_thread": False, "timeout": 30}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL),
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    """Create all tables registered on Base (development / tests only)."""
    import app.models  # noqa: F401  (register models on Base.metadata)

    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
