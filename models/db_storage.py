from os import getenv

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from models.base_model import Base
from models.user import User  # noqa: F401  registers the users table

load_dotenv()
DEFAULT_DATABASE_URL = "sqlite:///tutor.db"


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


class DBStorage:
    __engine = None
    __session = None

    def __init__(self, database_url: str | None = None):
        """Initialize engine from DATABASE_URL (SQLite file by default)"""
        self.__engine = self._build_engine(database_url or getenv("DATABASE_URL", DEFAULT_DATABASE_URL))

    @staticmethod
    def _build_engine(url: str):
        if _is_memory_sqlite(url):
            # one shared connection, otherwise every thread sees an empty database
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        if url.startswith("sqlite"):
            return create_engine(url, connect_args={"check_same_thread": False})
        return create_engine(url, pool_pre_ping=True)

    def configure(self, database_url: str):
        """Point the storage at another database and start a fresh session.

        Called by create_app() so each app (and each test) owns its database.
        """
        if self.__session is not None:
            self.__session.remove()
        if self.__engine is not None:
            self.__engine.dispose()
        self.__engine = self._build_engine(database_url)
        self.reload()

    def reload(self):
        """Create tables and start session"""
        Base.metadata.create_all(self.__engine)
        session_factory = sessionmaker(bind=self.__engine, expire_on_commit=False)
        self.__session = scoped_session(session_factory)

    def new(self, obj):
        """Add object to session"""
        self.__session.add(obj)

    def save(self):
        """Commit session"""
        try:
            self.__session.commit()
        except SQLAlchemyError:
            self.__session.rollback()
            raise

    def close(self):
        """Remove session (for API teardown)"""
        if self.__session is not None:
            self.__session.remove()

    # expose the SQLAlchemy session for advanced querying
    def get_session(self):
        return self.__session
