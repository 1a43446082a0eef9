import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Type
from urllib.parse import quote_plus

from sqlalchemy import create_engine, event, text, MetaData
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.pool import QueuePool

from nfex.config.nfex_config import NFeXConfig

# Configure logging
logger = logging.getLogger(__name__)

# Global variables
metadata = MetaData()
Base = declarative_base(metadata=metadata)


def get_base() -> Type:
    """
    Get the base class for declarative models

    Returns:
        Base class for declarative models
    """
    return Base


class Database:
    """
    Database connection manager for NFeX

    Handles both SQLite and PostgreSQL connections with proper configuration
    and connection pooling. Sessions are safe to use from executor threads.
    """

    def __init__(self, config: Optional[NFeXConfig] = None):
        """
        Initialize database connection

        Args:
            config: NFeXConfig instance. If None, uses the default configuration.
        """
        self.config = config or NFeXConfig()
        self.engine: Optional[Engine] = None
        self.Session = None
        self._initialize()

    def _create_engine(self) -> Engine:
        db_config = self.config.get_database_config()
        db_type = db_config.get('type', 'sqlite')

        if db_type == 'sqlite':
            db_path = Path(db_config.get('path', 'nfex.db'))

            # Ensure directory exists
            db_path.parent.mkdir(parents=True, exist_ok=True)

            engine = create_engine(
                f'sqlite:///{db_path}',
                poolclass=QueuePool,
                pool_size=5,
                max_overflow=10,
                pool_timeout=30,
                pool_recycle=1800,
                connect_args={
                    'timeout': 30,  # Connection timeout in seconds
                    'check_same_thread': False  # Store calls run in executor threads
                }
            )

            # Enable foreign key support
            @event.listens_for(engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            return engine

        if db_type in ['postgresql', 'postgres']:
            postgres_config = db_config.get('postgres', {})
            host = postgres_config.get('host', 'localhost')
            port = postgres_config.get('port', 5432)
            database = postgres_config.get('database', 'nfex')

            # URL-encode user and password to handle special characters
            user = quote_plus(postgres_config.get('user', 'postgres'))
            password = quote_plus(postgres_config.get('password', '') or '')
            sslmode = postgres_config.get('sslmode', 'prefer')

            connection_url = f'postgresql://{user}:{password}@{host}:{port}/{database}?sslmode={sslmode}'
            return create_engine(
                connection_url,
                poolclass=QueuePool,
                pool_size=5,
                max_overflow=10,
                pool_timeout=30,
                pool_recycle=1800
            )

        raise RuntimeError(f"Unsupported database type: {db_type}")

    def _initialize(self):
        """Initialize database connection and session"""
        max_retries = 3
        retry_delay = 1  # seconds

        for attempt in range(max_retries):
            try:
                self.engine = self._create_engine()

                # Test connection
                with self.engine.connect() as conn:
                    conn.execute(text("SELECT 1"))

                # Create session factory
                self.Session = sessionmaker(
                    bind=self.engine,
                    expire_on_commit=False,
                    autoflush=False
                )

                # Register the models before creating the tables
                import nfex.db.models  # noqa: F401
                Base.metadata.create_all(self.engine)

                logger.info("Database tables initialized successfully")
                return

            except SQLAlchemyError as e:
                if attempt < max_retries - 1:
                    logger.warning(f"Database connection attempt {attempt + 1} failed: {str(e)}. Retrying in {retry_delay} seconds...")
                    time.sleep(retry_delay)
                    retry_delay *= 2  # Exponential backoff
                else:
                    raise RuntimeError(f"Failed to connect to database after {max_retries} attempts: {str(e)}")

    def session(self) -> Session:
        """
        Get a database session

        Returns:
            SQLAlchemy session
        """
        if self.Session is None:
            self._initialize()
        return self.Session()

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """
        Get a database session with transaction management

        Everything done with the yielded session is committed together, or
        rolled back together when the block raises.

        Yields:
            SQLAlchemy session
        """
        session = self.session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.debug(f"Database transaction rolled back: {str(e)}")
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """Create all tables defined in the metadata"""
        try:
            get_base().metadata.create_all(self.engine)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {str(e)}")
            raise

    def drop_tables(self) -> None:
        """Drop all tables defined in the metadata"""
        get_base().metadata.drop_all(self.engine)

    def close(self) -> None:
        """Close all database connections"""
        if self.engine:
            self.engine.dispose()
