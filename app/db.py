from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings


def create_db_engine(database_url: str, **kwargs):
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # In-memory databases live as long as their one connection
            kwargs.setdefault("poolclass", StaticPool)
    return create_engine(database_url, **kwargs)


engine = create_db_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None) -> None:
    # Register models on the metadata before creating tables
    import app.models.kv  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
