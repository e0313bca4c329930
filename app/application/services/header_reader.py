"""Header reader — phase one of reading an uploaded CSV.

A single chunked ``pandas.read_csv`` reader drives both phases. Only the
header record is parsed here; the data records stay unread until the row
loader pulls them chunk by chunk, once the destination table exists. The file
is never held in memory as a whole.

A header cell that sanitizes to the primary key name is renamed (``id_2``)
under every collision policy, so a source ``ID`` column is never lost.
"""

from dataclasses import dataclass
from typing import Iterator, List, Sequence, TextIO, Tuple

import pandas as pd
import structlog

from app.config import ColumnCollisionPolicy, SanitizerVariant
from app.core.exceptions import DuplicateColumnError, EmptyHeaderError, MalformedInputError
from app.application.services.name_sanitizer import sanitize_identifier

logger = structlog.get_logger(__name__)

# Name of the surrogate key every materialized table starts with
PRIMARY_KEY = "id"


@dataclass(frozen=True)
class CsvHeader:
    """Sanitized, de-duplicated header of a CSV file."""
    columns: Tuple[str, ...]
    positions: Tuple[int, ...]  # source field index feeding each column
    width: int  # number of fields in the raw header record


def _malformed(e: Exception) -> MalformedInputError:
    if isinstance(e, UnicodeDecodeError):
        return MalformedInputError(f"CSV is not valid text: {e}")
    return MalformedInputError(f"Malformed CSV: {str(e).strip()}")


class CsvStream:
    """One pass over an open CSV handle, header first, then data chunks.

    Every field is read as text: no type inference, no NA conversion and no
    implicit index. Fields missing from short records come back as NaN.
    """

    def __init__(self, handle: TextIO, delimiter: str = ",", chunksize: int = 1000):
        self._handle = handle
        self._delimiter = delimiter
        self._chunksize = chunksize
        self._reader = None

    def _open(self):
        try:
            return pd.read_csv(
                self._handle,
                sep=self._delimiter,
                header=None,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                chunksize=self._chunksize,
            )
        except pd.errors.EmptyDataError:
            raise EmptyHeaderError() from None
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            raise _malformed(e) from e

    def first_record(self) -> List[str]:
        """Parse and return only the header record."""
        self._reader = self._open()
        try:
            chunk = self._reader.get_chunk(1)
        except StopIteration:
            raise EmptyHeaderError() from None
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            raise _malformed(e) from e

        if chunk.empty:
            raise EmptyHeaderError()
        return ["" if pd.isna(cell) else cell for cell in chunk.iloc[0]]

    def chunks(self) -> Iterator[pd.DataFrame]:
        """Data records after the header, at most ``chunksize`` per frame."""
        if self._reader is None:
            raise RuntimeError("first_record() must be called before chunks()")

        while True:
            try:
                chunk = self._reader.get_chunk()
            except StopIteration:
                return
            except (pd.errors.ParserError, UnicodeDecodeError) as e:
                raise _malformed(e) from e
            if not chunk.empty:
                yield chunk


def resolve_columns(
    cells: Sequence[str],
    variant: SanitizerVariant = SanitizerVariant.ALPHANUMERIC,
    policy: ColumnCollisionPolicy = ColumnCollisionPolicy.DROP,
) -> CsvHeader:
    """Sanitize header cells and apply the collision policy.

    Empty results fall back to ``column_<n>`` (1-based cell position). The
    policy applies between header cells; a name already taken by the primary
    key or by an earlier rename gets the next free ``_<n>`` suffix.
    """
    seen = set()
    taken = {PRIMARY_KEY}
    columns: List[str] = []
    positions: List[int] = []

    for position, cell in enumerate(cells):
        name = sanitize_identifier(cell, variant) or f"column_{position + 1}"

        if name in seen:
            if policy == ColumnCollisionPolicy.REJECT:
                raise DuplicateColumnError(
                    f"Duplicate column {name!r} (header cell {position + 1}: {cell!r})",
                    details={"column": name, "position": position + 1},
                )
            if policy == ColumnCollisionPolicy.DROP:
                logger.warning("Dropping duplicate header", column=name, position=position + 1)
                continue
        seen.add(name)

        if name in taken:
            suffix = 2
            while f"{name}_{suffix}" in taken:
                suffix += 1
            if name == PRIMARY_KEY:
                logger.info("Renaming header that collides with the primary key", column=f"{name}_{suffix}")
            name = f"{name}_{suffix}"

        taken.add(name)
        columns.append(name)
        positions.append(position)

    return CsvHeader(columns=tuple(columns), positions=tuple(positions), width=len(cells))


def read_header(
    stream: CsvStream,
    variant: SanitizerVariant = SanitizerVariant.ALPHANUMERIC,
    policy: ColumnCollisionPolicy = ColumnCollisionPolicy.DROP,
) -> CsvHeader:
    """Read and resolve the header record of ``stream``.

    Blank lines before the header are skipped.

    Raises:
        EmptyHeaderError: the stream holds no record, or its header is all blank.
        MalformedInputError: the first chunk cannot be parsed or decoded.
    """
    cells = stream.first_record()
    if not any(cell.strip() for cell in cells):
        raise EmptyHeaderError()

    header = resolve_columns(cells, variant, policy)
    logger.info("CSV headers processed", columns=list(header.columns))
    return header
