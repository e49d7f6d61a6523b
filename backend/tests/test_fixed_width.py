"""Tests for fixed-width field rendering."""

import logging

import pytest

from billing_engine.services.fixed_width import (
    FieldKind,
    FieldSpec,
    RecordLayout,
    constant,
    numeric,
    text,
)

LAYOUT = RecordLayout(
    name="sample",
    fields=(
        constant("record_type", "10"),
        numeric("amount", 5),
        text("name", 8, upper=True),
    ),
)


class TestFieldRendering:
    """Tests for padding and truncation of single fields."""

    def test_numeric_zero_padded_right_aligned(self) -> None:
        """Test numeric fields are right-aligned with zeros."""
        assert numeric("n", 5).render(42) == ("00042", False)

    def test_text_space_padded_left_aligned(self) -> None:
        """Test text fields are left-aligned with spaces."""
        assert text("t", 6).render("AB") == ("AB    ", False)

    def test_text_upper_cased(self) -> None:
        """Test upper-casing."""
        assert text("t", 5, upper=True).render("doe") == ("DOE  ", False)

    def test_overflow_keeps_leading_characters(self) -> None:
        """Test values wider than the field are truncated."""
        assert text("t", 3).render("ABCDEF") == ("ABC", True)
        assert numeric("n", 2).render(12345) == ("12", True)

    def test_none_renders_blank(self) -> None:
        """Test missing values."""
        assert text("t", 3).render(None) == ("   ", False)
        assert numeric("n", 3).render(None) == ("000", False)

    def test_default_used_for_missing_values(self) -> None:
        """Test defaults for None and empty strings."""
        field = numeric("n", 3, default="7")
        assert field.render(None) == ("007", False)
        assert field.render("") == ("007", False)

    def test_strip_spaces(self) -> None:
        """Test whitespace removal before padding."""
        field = FieldSpec(name="postal_code", width=6, upper=True, strip_spaces=True)
        assert field.render("s4p 3y2") == ("S4P3Y2", False)

    def test_constant_ignores_value(self) -> None:
        """Test constant fields."""
        field = constant("record_type", "90")
        assert field.width == 2
        assert field.render("xx") == ("90", False)


class TestFieldValidation:
    """Tests for numeric validation."""

    @pytest.mark.parametrize("value", [-1, "-5", 1.5, True])
    def test_invalid_numeric_values(self, value) -> None:
        """Test negative and non-integer values are rejected."""
        with pytest.raises(ValueError):
            numeric("n", 4).validate(value)

    def test_text_fields_accept_anything(self) -> None:
        """Test text fields are not validated."""
        text("t", 4).validate(-1)

    def test_numeric_strings_accepted(self) -> None:
        """Test digit strings pass validation."""
        numeric("n", 4).validate("0123")
        numeric("n", 4).validate(None)


class TestRecordLayout:
    """Tests for whole-record encoding and decoding."""

    def test_width_and_offsets(self) -> None:
        """Test layout width and field positions."""
        assert LAYOUT.width == 15
        assert [(f.name, start, end) for f, start, end in LAYOUT.offsets()] == [
            ("record_type", 0, 2),
            ("amount", 2, 7),
            ("name", 7, 15),
        ]

    def test_encode(self) -> None:
        """Test a full line."""
        assert LAYOUT.encode({"amount": 350, "name": "doe"}) == "1000350DOE     "

    def test_encode_validates_before_rendering(self) -> None:
        """Test an invalid value fails the whole record."""
        with pytest.raises(ValueError, match="amount"):
            LAYOUT.encode({"amount": -1, "name": "doe"})

    def test_overflow_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test truncation is logged as a warning."""
        with caplog.at_level(logging.WARNING):
            line = LAYOUT.encode({"amount": 1, "name": "MUCHTOOLONGNAME"})
        assert line.endswith("MUCHTOOL")
        assert "sample.name" in caplog.text
        assert "truncated" in caplog.text

    def test_decode(self) -> None:
        """Test slicing a line back into raw fields."""
        fields = LAYOUT.decode("1000350DOE     \r\n")
        assert fields == {"record_type": "10", "amount": "00350", "name": "DOE     "}

    def test_decode_wrong_width(self) -> None:
        """Test lines of the wrong width are rejected."""
        with pytest.raises(ValueError, match="expected 15"):
            LAYOUT.decode("10")

    def test_field_kind_values(self) -> None:
        """Test field kinds."""
        assert numeric("n", 1).kind == FieldKind.NUMERIC
        assert text("t", 1).kind == FieldKind.TEXT
