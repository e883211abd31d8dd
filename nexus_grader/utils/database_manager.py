"""
Database connection and session management
"""
import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..models.db_schemas import Base


logger = logging.getLogger(__name__)


class DatabaseManager:
    """Database connection manager for the practice submission store"""

    def __init__(self, connection_string: str):
        self.connection_string = connection_string
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None
        self.initialize_database()

    def initialize_database(self) -> None:
        """Initialize database connection and create tables"""
        try:
            kwargs = {"echo": False, "pool_pre_ping": True}
            if self.connection_string.startswith("sqlite"):
                kwargs["connect_args"] = {"check_same_thread": False}
                if self.connection_string in ("sqlite://", "sqlite:///:memory:"):
                    # one shared connection, otherwise every session sees an empty database
                    kwargs["poolclass"] = StaticPool
            else:
                kwargs["pool_recycle"] = 3600

            self.engine = create_engine(self.connection_string, **kwargs)

            # Create all tables
            Base.metadata.create_all(bind=self.engine)

            # Create session factory
            self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

            logger.info("Database initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    def get_session(self) -> Session:
        """Get a database session"""
        if not self.SessionLocal:
            raise RuntimeError("Database not initialized")

        return self.SessionLocal()

    def close(self) -> None:
        """Close database connection"""
        if self.engine:
            self.engine.dispose()
