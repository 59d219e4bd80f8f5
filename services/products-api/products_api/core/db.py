from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import QueuePool
from sqlalchemy.sql import Executable

from products_api.core.config import Settings
from products_api.core.logging import get_logger
from products_api.exceptions import ConnectionFailure, DuplicateProductError, QueryFailure

logger = get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class Base(DeclarativeBase):
    """Declarative base for the SQLAlchemy models."""


@dataclass(frozen=True)
class DatabaseConfig:
    dialect: str = "postgresql+psycopg"
    host: str = "localhost"
    port: int = 5432
    database: str = "products_db"
    username: str = "products_app"
    password: Optional[str] = field(default=None, repr=False)
    encrypt: bool = True
    pool_size: int = 5
    pool_timeout_seconds: float = 10.0
    connect_timeout_seconds: int = 10
    url: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "DatabaseConfig":
        return cls(
            dialect=settings.db_dialect,
            host=settings.db_host,
            port=settings.db_port,
            database=settings.db_name,
            username=settings.db_user,
            password=settings.db_password,
            encrypt=settings.db_encrypt,
            pool_size=settings.db_pool_size,
            pool_timeout_seconds=settings.db_pool_timeout_seconds,
            connect_timeout_seconds=settings.db_connect_timeout_seconds,
            url=(settings.database_url or "").strip() or None,
        )

    def sqlalchemy_url(self) -> URL:
        """
        Build the engine URL. A full `url` wins over the pieces.

        Encryption in transit maps to the driver's own option.
        """
        if self.url:
            return make_url(self.url)

        query: Dict[str, str] = {}
        if self.dialect.startswith("mssql"):
            query["Encrypt"] = "yes" if self.encrypt else "no"
            if "pyodbc" in self.dialect:
                query["driver"] = "ODBC Driver 18 for SQL Server"
        elif self.dialect.startswith("postgresql") and self.encrypt:
            query["sslmode"] = "require"

        return URL.create(
            self.dialect,
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
            query=query,
        )

    def connect_args(self) -> Dict[str, Any]:
        backend = self.sqlalchemy_url().get_backend_name()
        if backend == "postgresql":
            return {"connect_timeout": self.connect_timeout_seconds}
        if backend == "mssql":
            return {"timeout": self.connect_timeout_seconds}
        return {}


@dataclass(frozen=True)
class StoredProcedure:
    """A stored-procedure call with named parameters."""

    name: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not _IDENTIFIER.match(self.name):
            raise ValueError(f"Invalid procedure name: {self.name!r}")
        for p in self.params:
            if not _IDENTIFIER.match(p) or "." in p:
                raise ValueError(f"Invalid parameter name: {p!r}")

    def to_text(self, backend: str):
        if backend == "mssql":
            args = ", ".join(f"@{p} = :{p}" for p in self.params)
            sql = f"EXEC {self.name} {args}".rstrip()
        else:
            args = ", ".join(f":{p}" for p in self.params)
            sql = f"CALL {self.name}({args})"
        return text(sql)


Statement = Union[Executable, StoredProcedure]


@dataclass
class RecordSet:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None

    def __len__(self) -> int:
        return len(self.rows)


class DatabaseGateway:
    """
    Executes one parameterized statement per call on a bounded connection pool.

    Each call checks a connection out and runs inside `conn.begin()`, so the
    transaction is committed (or rolled back) and the connection returned to the
    pool on every exit path.
    """

    def __init__(self, config: DatabaseConfig, *, engine: Optional[Engine] = None) -> None:
        self.config = config
        self._engine = engine
        self._engine_lock = threading.Lock()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            with self._engine_lock:
                # Concurrent first calls must share one pool.
                if self._engine is None:
                    self._engine = create_engine(
                        self.config.sqlalchemy_url(),
                        poolclass=QueuePool,
                        pool_size=self.config.pool_size,
                        max_overflow=0,
                        pool_timeout=self.config.pool_timeout_seconds,
                        pool_pre_ping=True,
                        connect_args=self.config.connect_args(),
                    )
        return self._engine

    @property
    def backend(self) -> str:
        return self.config.sqlalchemy_url().get_backend_name()

    def execute(self, statement: Statement, parameters: Optional[Mapping[str, Any]] = None) -> RecordSet:
        params = dict(parameters or {})
        if isinstance(statement, StoredProcedure):
            params = {**dict(statement.params), **params}
            statement = statement.to_text(self.backend)

        try:
            conn = self.engine.connect()
        except PoolTimeoutError as e:
            logger.error("Connection pool exhausted: %s", e)
            raise ConnectionFailure() from e
        except SQLAlchemyError as e:
            logger.exception("Database connection failure")
            raise ConnectionFailure() from e

        with conn:
            try:
                with conn.begin():
                    result = conn.execute(statement, params)
                    rows = [dict(r) for r in result.mappings().all()] if result.returns_rows else []
                    return RecordSet(rows=rows, rowcount=result.rowcount)
            except IntegrityError as e:
                logger.warning("Integrity violation: %s", e.orig)
                raise DuplicateProductError() from e
            except DBAPIError as e:
                if e.connection_invalidated:
                    logger.exception("Database connection lost")
                    raise ConnectionFailure() from e
                logger.exception("Database statement failed")
                raise QueryFailure() from e
            except SQLAlchemyError as e:
                logger.exception("Database statement failed")
                raise QueryFailure() from e

    def create_schema(self) -> None:
        # Development and tests only; not a migration tool.
        from products_api import models  # noqa: F401

        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
