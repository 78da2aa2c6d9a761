# toybox/core/database.py
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager
from ..core.config import Settings
from ..domain.db_models import Base
import os


def create_db_engine(settings: Settings) -> Engine:
    """Create the database engine for settings.DB_URL"""
    url = settings.DB_URL
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection so every session sees the same in-memory db
            return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
        # Ensure directory exists for SQLite
        db_path = url.replace("sqlite:///", "")
        os.makedirs(os.path.dirname(db_path) if os.path.dirname(db_path) else ".", exist_ok=True)
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url)


def init_db(engine: Engine):
    """Initialize database tables"""
    Base.metadata.create_all(bind=engine)


class Database:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        db = cls(create_db_engine(settings))
        init_db(db.engine)
        return db

    @contextmanager
    def session(self):
        """Database session context manager"""
        session: Session = self._SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
