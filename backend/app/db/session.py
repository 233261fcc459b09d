from sqlmodel import SQLModel, create_engine
from app.core.config import settings


def build_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # Checkout requests are served from a thread pool
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, connect_args=connect_args)


engine = build_engine(settings.DATABASE_URL)


def create_tables(bind=None):
    """Create every table registered on the SQLModel metadata"""
    import app.models  # noqa: F401  registers table metadata

    SQLModel.metadata.create_all(bind or engine)
