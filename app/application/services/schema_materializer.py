"""Schema materializer — (re)creates the destination table of an upload.

Every upload replaces the table outright: DROP TABLE IF EXISTS followed by
CREATE TABLE, committed on their own connection before any row is inserted.
"""

from typing import Sequence

import structlog
from sqlalchemy import Column, Integer, MetaData, Table, Text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateTable, DropTable

from app.core.exceptions import (
    DuplicateColumnError,
    InvalidIdentifierError,
    SchemaCreationError,
    store_error_message,
)
from app.domain.models.upload import UploadJob
from app.application.services.header_reader import PRIMARY_KEY
from app.application.services.name_sanitizer import validate_identifier

logger = structlog.get_logger(__name__)

# Tables owned by the service itself
RESERVED_TABLE_NAMES = frozenset({UploadJob.__tablename__})


def build_table(table_name: str, columns: Sequence[str]) -> Table:
    """Describe ``table_name`` as an ``id`` key plus one TEXT column per name.

    Identifiers are checked against the allow-list here, before any SQL is
    rendered; rendering then quotes them where the dialect requires it.
    """
    validate_identifier(table_name, "table name")
    if table_name in RESERVED_TABLE_NAMES:
        raise InvalidIdentifierError(
            f"Table name {table_name!r} is reserved",
            details={"kind": "table name", "name": table_name},
        )

    seen = {PRIMARY_KEY}
    for name in columns:
        validate_identifier(name, "column name")
        if name in seen:
            raise DuplicateColumnError(f"Duplicate column {name!r} in table {table_name!r}")
        seen.add(name)

    return Table(
        table_name,
        MetaData(),
        Column(PRIMARY_KEY, Integer, primary_key=True, autoincrement=True),
        *(Column(name, Text) for name in columns),
    )


def materialize_table(engine: Engine, table_name: str, columns: Sequence[str]) -> Table:
    """Drop ``table_name`` if it exists and create it for ``columns``."""
    table = build_table(table_name, columns)

    try:
        with engine.begin() as conn:
            conn.execute(DropTable(table, if_exists=True))
            conn.execute(CreateTable(table))
    except SQLAlchemyError as e:
        logger.error("Table creation failed", table=table_name, error=store_error_message(e))
        raise SchemaCreationError(
            f"Failed to create table '{table_name}': {store_error_message(e)}",
            details={"table": table_name},
        ) from e

    logger.info("Table created", table=table_name, columns=list(columns))
    return table
