"""Declarative fixed-width record encoding.

A RecordLayout is an ordered table of FieldSpecs. Encoding validates
every field first and only then renders, so a bad numeric value never
produces a partial line. Values wider than their field are truncated
to the leading characters and logged as FormatFieldOverflow warnings.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from billing_engine.core.exceptions import FormatFieldOverflow

logger = logging.getLogger(__name__)


class FieldKind(str, Enum):
    """Justification and pad character of a field."""

    NUMERIC = "numeric"  # right-aligned, zero-padded
    TEXT = "text"  # left-aligned, space-padded


@dataclass(frozen=True)
class FieldSpec:
    """One positional field.

    Attributes:
        name: Key looked up in the values mapping
        width: Exact number of characters the field occupies
        kind: NUMERIC or TEXT padding
        constant: Literal written regardless of the values mapping
        default: Value used when the mapping has None or an empty string
        upper: Upper-case text before padding
        strip_spaces: Remove all whitespace before padding (postal codes)
    """

    name: str
    width: int
    kind: FieldKind = FieldKind.TEXT
    constant: str | None = None
    default: str | int | None = None
    upper: bool = False
    strip_spaces: bool = False

    def validate(self, value: Any) -> None:
        """Reject values that cannot be rendered.

        Raises:
            ValueError: Negative or non-integer values in a NUMERIC field.
        """
        if self.kind != FieldKind.NUMERIC or value is None:
            return
        if isinstance(value, bool) or isinstance(value, float):
            raise ValueError(f"Field {self.name!r} requires an integer, got {value!r}")
        if isinstance(value, int) and value < 0:
            raise ValueError(f"Field {self.name!r} must not be negative, got {value}")
        if isinstance(value, str) and value.strip().startswith("-"):
            raise ValueError(f"Field {self.name!r} must not be negative, got {value!r}")
        if not isinstance(value, (int, str)):
            raise ValueError(f"Field {self.name!r} has unsupported type {type(value).__name__}")

    def render(self, value: Any) -> tuple[str, bool]:
        """Pad or truncate a value to the field width.

        Returns:
            (rendered text, whether the value was truncated)
        """
        if self.constant is not None:
            text = self.constant
        else:
            if value is None or value == "":
                value = self.default
            text = "" if value is None else str(value)

        if self.strip_spaces:
            text = "".join(text.split())
        if self.upper:
            text = text.upper()

        overflow = len(text) > self.width
        if overflow:
            text = text[: self.width]
        elif self.kind == FieldKind.NUMERIC:
            text = text.rjust(self.width, "0")
        else:
            text = text.ljust(self.width, " ")
        return text, overflow


@dataclass(frozen=True)
class RecordLayout:
    """Ordered field table for one record type."""

    name: str
    fields: tuple[FieldSpec, ...]

    @property
    def width(self) -> int:
        return sum(f.width for f in self.fields)

    def offsets(self) -> list[tuple[FieldSpec, int, int]]:
        """Return (field, start, end) slices in 0-indexed positions."""
        result = []
        position = 0
        for field in self.fields:
            result.append((field, position, position + field.width))
            position += field.width
        return result

    def validate(self, values: Mapping[str, Any]) -> None:
        """Validate all fields without rendering.

        Raises:
            ValueError: If any field value is invalid.
        """
        for field in self.fields:
            if field.constant is None:
                field.validate(values.get(field.name))

    def encode(self, values: Mapping[str, Any]) -> str:
        """Render a record line (without line terminator).

        Raises:
            ValueError: If a numeric field holds a negative or non-integer value.
        """
        self.validate(values)

        parts = []
        for field in self.fields:
            value = values.get(field.name)
            text, overflow = field.render(value)
            if overflow:
                warning = FormatFieldOverflow(self.name, field.name, str(value), field.width)
                logger.warning(str(warning))
            parts.append(text)
        return "".join(parts)

    def decode(self, line: str) -> dict[str, str]:
        """Slice a rendered line back into raw field strings (no unpadding)."""
        line = line.rstrip("\r\n")
        if len(line) != self.width:
            raise ValueError(
                f"{self.name} line has {len(line)} characters, expected {self.width}"
            )
        return {field.name: line[start:end] for field, start, end in self.offsets()}


def numeric(name: str, width: int, default: str | int | None = None) -> FieldSpec:
    """Shorthand for a zero-padded, right-aligned field."""
    return FieldSpec(name=name, width=width, kind=FieldKind.NUMERIC, default=default)


def text(name: str, width: int, upper: bool = False) -> FieldSpec:
    """Shorthand for a space-padded, left-aligned field."""
    return FieldSpec(name=name, width=width, kind=FieldKind.TEXT, upper=upper)


def constant(name: str, value: str) -> FieldSpec:
    """Shorthand for a literal field."""
    return FieldSpec(name=name, width=len(value), constant=value)
