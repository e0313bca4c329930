"""Tests for reading and resolving CSV headers."""

import io

import pytest

from app.config import ColumnCollisionPolicy, SanitizerVariant
from app.core.exceptions import DuplicateColumnError, EmptyHeaderError, MalformedInputError
from app.application.services.header_reader import CsvStream, read_header, resolve_columns


def _stream(content: str, **kwargs) -> CsvStream:
    return CsvStream(io.StringIO(content), **kwargs)


class TestReadHeader:
    """Phase one: only the header record is parsed."""

    def test_sanitizes_cells(self):
        header = read_header(_stream("Name,Age\nAlice,30\n"))
        assert header.columns == ("name", "age")
        assert header.positions == (0, 1)
        assert header.width == 2

    def test_quoted_cells(self):
        header = read_header(_stream('"First Name","Last Name"\nAda,Lovelace\n'))
        assert header.columns == ("first_name", "last_name")

    def test_numeric_looking_header_stays_text(self):
        header = read_header(_stream("2020,NA,null\n1,2,3\n"))
        assert header.columns == ("2020", "na", "null")

    def test_data_rows_follow_on_same_stream(self):
        stream = _stream("Name,Age\nAlice,30\nBob,25\n")
        read_header(stream)
        [chunk] = list(stream.chunks())
        assert chunk.values.tolist() == [["Alice", "30"], ["Bob", "25"]]

    def test_multiline_quoted_header_cell(self):
        stream = _stream('"Full\nName",Age\nAda,36\n')
        header = read_header(stream)
        assert header.columns == ("full_name", "age")
        assert [chunk.values.tolist() for chunk in stream.chunks()] == [[["Ada", "36"]]]

    def test_bad_data_row_does_not_fail_header(self):
        # Only the header record is parsed before the table exists
        header = read_header(_stream("Name,Age\nAlice,30,extra\n"))
        assert header.columns == ("name", "age")

    def test_custom_delimiter(self):
        header = read_header(_stream("Nome;Idade\nAna;30\n", delimiter=";"))
        assert header.columns == ("nome", "idade")

    def test_empty_stream(self):
        with pytest.raises(EmptyHeaderError):
            read_header(_stream(""))

    def test_only_blank_lines(self):
        with pytest.raises(EmptyHeaderError):
            read_header(_stream("\n\n\n"))

    def test_leading_blank_lines_are_skipped(self):
        header = read_header(_stream("\nName,Age\nAlice,30\n"))
        assert header.columns == ("name", "age")

    def test_header_of_empty_cells(self):
        with pytest.raises(EmptyHeaderError):
            read_header(_stream(",,\n1,2,3\n"))

    def test_unterminated_quote(self):
        with pytest.raises(MalformedInputError):
            read_header(_stream('"Name,Age\nAlice,30\n'))

    def test_chunks_before_header(self):
        with pytest.raises(RuntimeError):
            list(_stream("Name\nAda\n").chunks())


class TestResolveColumns:
    """Collision policies and fallbacks."""

    def test_drop_keeps_first_occurrence(self):
        header = resolve_columns(["Name", "name", "NAME", "Age"])
        assert header.columns == ("name", "age")
        assert header.positions == (0, 3)
        assert header.width == 4

    def test_drop_counts_only_distinct_sanitized_values(self):
        cells = ["First Name", "first name", "First_Name", "City"]
        header = resolve_columns(cells)
        distinct = {"first_name", "city"}
        assert len(header.columns) == len(distinct)

    def test_rename_appends_suffix(self):
        header = resolve_columns(["a", "A", "a_2", "a"], policy=ColumnCollisionPolicy.RENAME)
        assert header.columns == ("a", "a_2", "a_2_2", "a_3")
        assert header.positions == (0, 1, 2, 3)

    def test_reject_raises(self):
        with pytest.raises(DuplicateColumnError, match="'name'"):
            resolve_columns(["Name", "name"], policy=ColumnCollisionPolicy.REJECT)

    @pytest.mark.parametrize("policy", list(ColumnCollisionPolicy))
    def test_primary_key_name_is_renamed(self, policy):
        header = resolve_columns(["ID", "value"], policy=policy)
        assert header.columns == ("id_2", "value")
        assert header.positions == (0, 1)

    def test_repeated_id_follows_policy(self):
        assert resolve_columns(["id", "Id", "value"]).columns == ("id_2", "value")
        renamed = resolve_columns(["id", "Id"], policy=ColumnCollisionPolicy.RENAME)
        assert renamed.columns == ("id_2", "id_3")
        with pytest.raises(DuplicateColumnError):
            resolve_columns(["id", "Id"], policy=ColumnCollisionPolicy.REJECT)

    def test_empty_cells_fall_back_to_position(self):
        header = resolve_columns(["Name", "", "Age"])
        assert header.columns == ("name", "column_2", "age")

    def test_whitespace_variant_keeps_punctuation(self):
        header = resolve_columns(["E-mail", "Last Name"], variant=SanitizerVariant.WHITESPACE)
        assert header.columns == ("e-mail", "last_name")
