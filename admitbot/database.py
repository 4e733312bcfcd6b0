# admitbot/database.py
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from .config import DATABASE_URL, DB_ECHO

# SQLite connections are shared across FastAPI's worker threads
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args, echo=DB_ECHO, future=True)

SessionLocal = sessionmaker(bind=engine, autoflush=False, future=True)
Base = declarative_base()


def get_db() -> Iterator[Session]:
    """Request-scoped session; closed once the response is sent."""
    with SessionLocal() as db:
        yield db
