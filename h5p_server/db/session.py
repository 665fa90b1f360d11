from __future__ import annotations

from h5p_server.core.config import settings
from h5p_server.models import Base
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

engine = create_engine(settings.database_url, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create the library and settings tables if they don't exist yet."""
    Base.metadata.create_all(bind=engine)

