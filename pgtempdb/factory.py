"""Temporary databases created on a Postgres instance.

Connections are plain DB-API 2.0 connections supplied by the caller. They
must run in autocommit mode, since ``CREATE DATABASE`` and ``DROP DATABASE``
cannot run inside a transaction block.
"""

from __future__ import annotations

import abc
import logging
import re
import uuid
from contextlib import closing
from typing import Any, Callable, Optional, Protocol, Tuple

DEFAULT_ON_INSTANCE_DB_PREFIX = "pgschemadifftmp_"
DEFAULT_ON_INSTANCE_METADATA_SCHEMA = "pgschemadifftmp_metadata"
DEFAULT_ON_INSTANCE_METADATA_TABLE = "metadata"

SIMPLE_IDENTIFIER_REGEX = r"^[a-z_][a-z0-9_$]*$"
_SIMPLE_IDENTIFIER = re.compile(SIMPLE_IDENTIFIER_REGEX)

__all__ = [
    "DEFAULT_ON_INSTANCE_DB_PREFIX",
    "DEFAULT_ON_INSTANCE_METADATA_SCHEMA",
    "DEFAULT_ON_INSTANCE_METADATA_TABLE",
    "SIMPLE_IDENTIFIER_REGEX",
    "TempDbError",
    "Factory",
    "OnInstanceFactory",
    "is_simple_identifier",
    "sanitize_identifier",
    "assert_conn_is_on_expected_database",
]


class TempDbError(Exception):
    """Raised when a temporary database cannot be created, checked or dropped."""


class Connection(Protocol):
    def cursor(self) -> Any: ...

    def close(self) -> None: ...


CreateConnForDb = Callable[[str], Connection]
Dropper = Callable[[], None]


def is_simple_identifier(name: str) -> bool:
    """Return True if ``name`` needs no quoting to be used as a Postgres identifier."""
    return _SIMPLE_IDENTIFIER.fullmatch(name) is not None


def sanitize_identifier(*args: str) -> str:
    """Quote each part as a Postgres identifier and join them with dots."""
    parts = []
    for part in args:
        cleaned = part.replace('"', '""').replace("\x00", "")
        parts.append(f'"{cleaned}"')
    return ".".join(parts)


def _execute(conn: Connection, statement: str) -> None:
    with closing(conn.cursor()) as cursor:
        cursor.execute(statement)


def assert_conn_is_on_expected_database(conn: Connection, expected_database: str) -> None:
    """Check that ``conn`` is connected to ``expected_database``."""
    with closing(conn.cursor()) as cursor:
        cursor.execute("SELECT current_database();")
        row = cursor.fetchone()
    if row is None:
        raise TempDbError("current_database() returned no rows")
    db_name = row[0]
    if db_name != expected_database:
        raise TempDbError(
            f"connection pool is on database {db_name}, expected {expected_database}"
        )


class Factory(abc.ABC):
    """Creates temporary databases; use as a context manager to close it."""

    @abc.abstractmethod
    def create(self) -> Tuple[Connection, Dropper]:
        """Create a temporary database and return a connection and its dropper.

        Always call the dropper so the database and connection are cleaned up.
        """

    @abc.abstractmethod
    def close(self) -> None:
        """Release the factory's resources."""

    def __enter__(self) -> "Factory":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class OnInstanceFactory(Factory):
    """Creates temporary databases on the Postgres instance reached through
    ``create_conn_for_db``.

    The instance is first reached through the "postgres" database; temporary
    databases are created from that connection and then connected to through
    ``create_conn_for_db`` as well. Orphaned databases may be left behind if a
    drop fails; they carry the configured prefix and a metadata table holding
    their creation time, which a cleanup job can use.
    """

    def __init__(
        self,
        create_conn_for_db: CreateConnForDb,
        *,
        db_prefix: str = DEFAULT_ON_INSTANCE_DB_PREFIX,
        metadata_schema: str = DEFAULT_ON_INSTANCE_METADATA_SCHEMA,
        metadata_table: str = DEFAULT_ON_INSTANCE_METADATA_TABLE,
        logger: Optional[Any] = None,
    ) -> None:
        if not is_simple_identifier(db_prefix):
            raise TempDbError(
                f"dbPrefix ({db_prefix}) must be a simple Postgres identifier matching "
                f"the following regex: {SIMPLE_IDENTIFIER_REGEX}"
            )
        self.db_prefix = db_prefix
        self.metadata_schema = metadata_schema
        self.metadata_table = metadata_table
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._create_conn_for_db = create_conn_for_db

        root_conn = create_conn_for_db("postgres")
        try:
            assert_conn_is_on_expected_database(root_conn, "postgres")
        except Exception as err:
            root_conn.close()
            raise TempDbError(f"assertConnPoolIsOnExpectedDatabase: {err}") from err
        self._root_conn = root_conn

    def close(self) -> None:
        self._root_conn.close()

    def create(self) -> Tuple[Connection, Dropper]:
        temp_db_name = self.db_prefix + str(uuid.uuid1()).replace("-", "_")
        _execute(self._root_conn, f"CREATE DATABASE {temp_db_name};")

        temp_conn: Optional[Connection] = None
        try:
            temp_conn = self._create_conn_for_db(temp_db_name)
            try:
                assert_conn_is_on_expected_database(temp_conn, temp_db_name)
            except Exception as err:
                raise TempDbError(f"assertConnPoolIsOnExpectedDatabase: {err}") from err

            # Record the creation time so a cleanup process can find databases
            # whose dropper never ran.
            schema_name = sanitize_identifier(self.metadata_schema)
            table_name = sanitize_identifier(self.metadata_schema, self.metadata_table)
            _execute(
                temp_conn,
                f"""
		CREATE SCHEMA {schema_name}
			CREATE TABLE {table_name}(
				db_created_at TIMESTAMPTZ NOT NULL DEFAULT current_timestamp
			);
		INSERT INTO {table_name} DEFAULT VALUES;
	""",
            )
        except Exception as err:
            if temp_conn is not None:
                try:
                    temp_conn.close()
                except Exception:
                    pass
            try:
                self.drop_temp_database(temp_db_name)
            except Exception as drop_err:
                self.logger.error(
                    "Failed to drop temporary database %s because of error %s. "
                    "This drop was automatically triggered by error %s",
                    temp_db_name,
                    drop_err,
                    err,
                )
            raise

        conn = temp_conn

        def drop() -> None:
            try:
                conn.close()
            except Exception:
                pass
            self.drop_temp_database(temp_db_name)

        return conn, drop

    def drop_temp_database(self, db_name: str) -> None:
        """Drop ``db_name``, refusing any name without the temporary prefix."""
        if not db_name.startswith(self.db_prefix):
            raise TempDbError(f"drop non-temporary database: {db_name}")
        _execute(self._root_conn, f"DROP DATABASE {db_name};")