"""
Database connection management.

On Cloud Run the pool connects through the Cloud SQL Python Connector with
IAM authentication. Locally, DATABASE_URL (a postgresql+pg8000:// URL)
can be set instead to reach a plain Postgres server.
"""

import os
from contextlib import contextmanager
from typing import Generator

from google.cloud.sql.connector import Connector
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker


class DatabaseConnection:
    """
    Process-wide SQLAlchemy engine and session factory.

    Usage:
        DatabaseConnection.initialize()

        with DatabaseConnection.session() as session:
            session.execute(...)

        DatabaseConnection.close()
    """

    _engine: Engine | None = None
    _connector: Connector | None = None
    _session_factory: sessionmaker | None = None
    _initialized: bool = False

    @classmethod
    def initialize(
        cls,
        instance_connection_name: str | None = None,
        db_name: str | None = None,
        db_user: str | None = None,
        database_url: str | None = None,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
    ):
        """
        Initialize the connection pool. Subsequent calls are no-ops.

        Args:
            instance_connection_name: Cloud SQL instance (project:region:instance)
            db_name: Database name
            db_user: IAM database user (service account email)
            database_url: Direct SQLAlchemy URL, bypasses the Cloud SQL connector
            pool_size: Base connection pool size. Keep it at or above the
                carrier poll concurrency of the instance
            max_overflow: Additional connections allowed beyond pool_size
            pool_timeout: Seconds to wait for a connection
            pool_recycle: Recycle connections after this many seconds

        Raises:
            ValueError: If neither a URL nor the Cloud SQL settings are available
        """
        if cls._initialized:
            return

        pool_options = {
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_timeout": pool_timeout,
            "pool_recycle": pool_recycle,
            "pool_pre_ping": True,
        }

        database_url = database_url or os.getenv("DATABASE_URL")
        if database_url:
            cls._engine = create_engine(database_url, **pool_options)
        else:
            cls._engine = cls._create_cloud_sql_engine(
                instance_connection_name, db_name, db_user, pool_options
            )

        cls._session_factory = sessionmaker(bind=cls._engine)
        cls._initialized = True

    @classmethod
    def _create_cloud_sql_engine(
        cls,
        instance_connection_name: str | None,
        db_name: str | None,
        db_user: str | None,
        pool_options: dict,
    ) -> Engine:
        instance_connection_name = instance_connection_name or os.getenv(
            "INSTANCE_CONNECTION_NAME"
        )
        db_name = db_name or os.getenv("DB_NAME", "delayguard")
        db_user = db_user or os.getenv("DB_USER")

        if not instance_connection_name:
            raise ValueError(
                "INSTANCE_CONNECTION_NAME environment variable is required. "
                "Format: project:region:instance"
            )

        if not db_user:
            raise ValueError(
                "DB_USER environment variable is required. "
                "Should be service account email for IAM auth."
            )

        cls._connector = Connector()

        def getconn():
            assert cls._connector is not None
            return cls._connector.connect(
                instance_connection_name,
                "pg8000",
                user=db_user,
                db=db_name,
                enable_iam_auth=True,
            )

        return create_engine("postgresql+pg8000://", creator=getconn, **pool_options)

    @classmethod
    def get_engine(cls) -> Engine:
        if not cls._initialized or cls._engine is None:
            raise RuntimeError(
                "Database not initialized. Call DatabaseConnection.initialize() first."
            )
        return cls._engine

    @classmethod
    @contextmanager
    def session(cls) -> Generator[Session, None, None]:
        """Session that commits on success and rolls back on exception."""
        session = cls.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @classmethod
    def get_session(cls) -> Session:
        """New session; the caller commits, rolls back and closes it."""
        if not cls._initialized or cls._session_factory is None:
            raise RuntimeError(
                "Database not initialized. Call DatabaseConnection.initialize() first."
            )
        return cls._session_factory()

    @classmethod
    def close(cls):
        """Dispose the pool and close the connector."""
        if cls._engine:
            cls._engine.dispose()
            cls._engine = None

        if cls._connector:
            cls._connector.close()
            cls._connector = None

        cls._session_factory = None
        cls._initialized = False

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._initialized
