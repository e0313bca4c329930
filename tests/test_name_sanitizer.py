"""Tests for identifier sanitizing and validation."""

import re

import pytest

from app.config import SanitizerVariant
from app.core.exceptions import InvalidIdentifierError
from app.application.services.name_sanitizer import (
    sanitize_identifier,
    table_name_for,
    validate_identifier,
)

SAMPLES = [
    "Name",
    "First Name",
    "  padded  ",
    "E-mail",
    "Preço c/ST",
    "Quant.",
    "2020 Sales (USD)",
    "tab\tand\nnewline",
    "İstanbul",
    "ALREADY_safe_123",
    "",
    "!!!",
]


class TestSanitizeIdentifier:
    """Both sanitizer variants."""

    @pytest.mark.parametrize("value", SAMPLES)
    def test_alphanumeric_output_is_safe(self, value):
        assert re.fullmatch(r"[a-z0-9_]*", sanitize_identifier(value))

    @pytest.mark.parametrize("value", SAMPLES)
    @pytest.mark.parametrize("variant", list(SanitizerVariant))
    def test_idempotent(self, value, variant):
        once = sanitize_identifier(value, variant)
        assert sanitize_identifier(once, variant) == once

    def test_alphanumeric_replaces_each_character(self):
        assert sanitize_identifier("First Name") == "first_name"
        assert sanitize_identifier("E-mail") == "e_mail"
        assert sanitize_identifier("Last  Name") == "last__name"
        assert sanitize_identifier("Quant.") == "quant_"

    def test_whitespace_variant_collapses_runs_only(self):
        variant = SanitizerVariant.WHITESPACE
        assert sanitize_identifier("First Name", variant) == "first_name"
        assert sanitize_identifier("Last  \t Name", variant) == "last_name"
        assert sanitize_identifier("E-mail", variant) == "e-mail"

    def test_empty_input_gives_empty_output(self):
        assert sanitize_identifier("") == ""
        assert sanitize_identifier("", SanitizerVariant.WHITESPACE) == ""


class TestTableNameFor:
    """Deriving table names from client file names."""

    def test_strips_extension(self):
        assert table_name_for("people.csv") == "people"

    def test_strips_only_last_extension(self):
        assert table_name_for("sales.2024.csv") == "sales_2024"

    def test_drops_directories(self):
        assert table_name_for("exports/Q1 Report.csv") == "q1_report"
        assert table_name_for("C:\\Users\\me\\Monthly Data.CSV") == "monthly_data"

    def test_whitespace_variant(self):
        assert table_name_for("My Data.csv", SanitizerVariant.WHITESPACE) == "my_data"


class TestValidateIdentifier:
    """Allow-list check applied before identifiers reach SQL text."""

    @pytest.mark.parametrize("name", ["people", "first_name", "2020_sales", "_"])
    def test_accepts_safe_names(self, name):
        assert validate_identifier(name) == name

    @pytest.mark.parametrize("name", ["", "e-mail", "People", "drop table x;", "name\n", "na me"])
    def test_rejects_unsafe_names(self, name):
        with pytest.raises(InvalidIdentifierError):
            validate_identifier(name)

    def test_error_names_the_kind(self):
        with pytest.raises(InvalidIdentifierError, match="table name"):
            validate_identifier("bad-name", "table name")
