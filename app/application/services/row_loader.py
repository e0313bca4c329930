"""Row loader — phase two of reading an uploaded CSV.

Rows are pulled from the same pandas reader that produced the header, one
chunk of at most ``INSERT_BATCH_SIZE`` records at a time, and inserted inside a
single transaction. Memory stays bounded by the chunk size while a file is
still loaded all-or-nothing.
"""

import itertools
import time
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import pandas as pd
import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import (
    EmptyDatasetError,
    MalformedInputError,
    RowInsertError,
    UploadError,
    UploadTimeoutError,
    store_error_message,
)
from app.application.services.header_reader import CsvHeader, CsvStream
from app.application.services.schema_materializer import build_table

logger = structlog.get_logger(__name__)

Row = Tuple[Optional[str], ...]


def _project(record: Sequence, positions: Sequence[int]) -> Row:
    """Pick the kept header positions; fields missing from short rows become NULL."""
    return tuple(None if pd.isna(record[i]) else record[i] for i in positions)


def iter_row_batches(stream: CsvStream, header: CsvHeader) -> Iterator[List[Row]]:
    """Yield one non-empty list of rows per parsed chunk.

    Blank lines are skipped by the reader. A record wider than the header, or
    any parse or decode error, raises ``MalformedInputError``.
    """
    for chunk in stream.chunks():
        if chunk.shape[1] > header.width:
            raise MalformedInputError(
                f"Rows have {chunk.shape[1]} fields, header has {header.width}",
                details={"fields": chunk.shape[1], "width": header.width},
            )
        batch = [_project(record, header.positions) for record in chunk.itertuples(index=False, name=None)]
        if batch:
            yield batch


def load_rows(
    engine: Engine,
    table_name: str,
    columns: Sequence[str],
    batches: Iterable[List[Row]],
    deadline: Optional[float] = None,
) -> int:
    """Insert every row of ``batches`` into ``table_name`` in one transaction.

    ``deadline`` is a ``time.monotonic()`` value checked before each batch.
    Returns the number of rows committed.

    Raises:
        EmptyDatasetError: there are no data rows; no transaction is opened.
        RowInsertError: an insert failed; nothing from this file is committed.
        UploadTimeoutError: the deadline passed; nothing is committed.
        MalformedInputError: the stream broke mid-file; nothing is committed.
    """
    batches = (batch for batch in batches if batch)
    first = next(batches, None)
    if first is None:
        raise EmptyDatasetError(details={"table": table_name})

    insert = build_table(table_name, columns).insert()
    row_count = 0

    try:
        with engine.begin() as conn:
            for batch in itertools.chain([first], batches):
                if deadline is not None and time.monotonic() > deadline:
                    raise UploadTimeoutError(
                        f"Timed out loading '{table_name}' after {row_count} rows",
                        details={"table": table_name, "rows": row_count},
                    )
                conn.execute(insert, [dict(zip(columns, row)) for row in batch])
                row_count += len(batch)
    except SQLAlchemyError as e:
        logger.error(
            "Row insert failed, transaction rolled back",
            table=table_name,
            rows_attempted=row_count,
            error=store_error_message(e),
        )
        raise RowInsertError(
            f"Failed to import rows into '{table_name}': {store_error_message(e)}",
            details={"table": table_name},
        ) from e
    except UploadError as e:
        logger.error("Load aborted, transaction rolled back", table=table_name, error=e.message)
        raise

    logger.info("Data imported", table=table_name, rows=row_count)
    return row_count
