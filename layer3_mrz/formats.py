"""
Layer 3 — MRZ Formats
ICAO 9303 layouts as data: every format is a table of fixed-width fields.

A checked field is followed by a check digit field named ``<name>_check``.
The composite check digit covers the listed fields in order.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

FILLER = "<"


class FieldType(Enum):
    """Semantic type of an MRZ field."""
    ALPHA = "alpha"
    NUMERIC = "numeric"
    ALPHANUMERIC = "alphanumeric"
    DATE = "date"                  # YYMMDD
    SEX = "sex"
    COUNTRY = "country"
    CHECK_DIGIT = "check_digit"
    COMPOSITE = "composite"        # primary<<secondary<name<parts


@dataclass(frozen=True)
class FieldDescriptor:
    """Position and meaning of one field."""
    name: str
    line: int
    start: int
    length: int
    kind: FieldType
    checked: bool = False
    optional: bool = False         # '<' check digit means "not applicable"
    future_years: int = 50         # Latest year a decoded date may fall in, relative to today

    @property
    def end(self) -> int:
        return self.start + self.length

    @property
    def check_field(self) -> Optional[str]:
        return f"{self.name}_check" if self.checked else None

    def extract(self, lines: Sequence[str]) -> str:
        return lines[self.line][self.start:self.end]


@dataclass(frozen=True)
class FormatSpec:
    line_count: int
    line_width: int
    fields: Tuple[FieldDescriptor, ...]
    composite: Tuple[str, ...] = ()


def _checked(name, line, start, length, kind, optional=False, future_years=50):
    """A field plus the check digit right after it."""
    return (
        FieldDescriptor(name, line, start, length, kind, checked=True,
                        optional=optional, future_years=future_years),
        FieldDescriptor(f"{name}_check", line, start + length, 1, FieldType.CHECK_DIGIT),
    )


def _header(names_end):
    """Document code, issuing state and names on the first line (TD2, TD3, MRV)."""
    return (
        FieldDescriptor("document_type", 0, 0, 2, FieldType.ALPHA),
        FieldDescriptor("issuing_country", 0, 2, 3, FieldType.COUNTRY),
        FieldDescriptor("names", 0, 5, names_end - 5, FieldType.COMPOSITE),
    )


def _second_line():
    """Second line shared by TD2, TD3 and MRV layouts up to the optional data."""
    return (
        *_checked("document_number", 1, 0, 9, FieldType.ALPHANUMERIC),
        FieldDescriptor("nationality", 1, 10, 3, FieldType.COUNTRY),
        *_checked("birth_date", 1, 13, 6, FieldType.DATE, future_years=0),
        FieldDescriptor("sex", 1, 20, 1, FieldType.SEX),
        *_checked("expiry_date", 1, 21, 6, FieldType.DATE, future_years=20),
    )


_DATES_COMPOSITE = (
    "birth_date", "birth_date_check",
    "expiry_date", "expiry_date_check",
)


TD1_SPEC = FormatSpec(
    line_count=3,
    line_width=30,
    fields=(
        FieldDescriptor("document_type", 0, 0, 2, FieldType.ALPHA),
        FieldDescriptor("issuing_country", 0, 2, 3, FieldType.COUNTRY),
        *_checked("document_number", 0, 5, 9, FieldType.ALPHANUMERIC),
        FieldDescriptor("optional_data", 0, 15, 15, FieldType.ALPHANUMERIC),
        *_checked("birth_date", 1, 0, 6, FieldType.DATE, future_years=0),
        FieldDescriptor("sex", 1, 7, 1, FieldType.SEX),
        *_checked("expiry_date", 1, 8, 6, FieldType.DATE, future_years=20),
        FieldDescriptor("nationality", 1, 15, 3, FieldType.COUNTRY),
        FieldDescriptor("optional_data_2", 1, 18, 11, FieldType.ALPHANUMERIC),
        FieldDescriptor("composite_check", 1, 29, 1, FieldType.CHECK_DIGIT),
        FieldDescriptor("names", 2, 0, 30, FieldType.COMPOSITE),
    ),
    composite=(
        "document_number", "document_number_check", "optional_data",
        *_DATES_COMPOSITE,
        "optional_data_2",
    ),
)

TD2_SPEC = FormatSpec(
    line_count=2,
    line_width=36,
    fields=(
        *_header(36),
        *_second_line(),
        FieldDescriptor("optional_data", 1, 28, 7, FieldType.ALPHANUMERIC),
        FieldDescriptor("composite_check", 1, 35, 1, FieldType.CHECK_DIGIT),
    ),
    composite=(
        "document_number", "document_number_check",
        *_DATES_COMPOSITE,
        "optional_data",
    ),
)

TD3_SPEC = FormatSpec(
    line_count=2,
    line_width=44,
    fields=(
        *_header(44),
        *_second_line(),
        *_checked("optional_data", 1, 28, 14, FieldType.ALPHANUMERIC, optional=True),
        FieldDescriptor("composite_check", 1, 43, 1, FieldType.CHECK_DIGIT),
    ),
    composite=(
        "document_number", "document_number_check",
        *_DATES_COMPOSITE,
        "optional_data", "optional_data_check",
    ),
)

MRVA_SPEC = FormatSpec(
    line_count=2,
    line_width=44,
    fields=(
        *_header(44),
        *_second_line(),
        FieldDescriptor("optional_data", 1, 28, 16, FieldType.ALPHANUMERIC),
    ),
)

MRVB_SPEC = FormatSpec(
    line_count=2,
    line_width=36,
    fields=(
        *_header(36),
        *_second_line(),
        FieldDescriptor("optional_data", 1, 28, 8, FieldType.ALPHANUMERIC),
    ),
)


class MRZFormat(Enum):
    """Known MRZ layouts."""
    TD1 = TD1_SPEC
    TD2 = TD2_SPEC
    TD3 = TD3_SPEC
    MRVA = MRVA_SPEC
    MRVB = MRVB_SPEC

    @property
    def line_count(self) -> int:
        return self.value.line_count

    @property
    def line_width(self) -> int:
        return self.value.line_width

    @property
    def fields(self) -> Tuple[FieldDescriptor, ...]:
        return self.value.fields

    @property
    def composite(self) -> Tuple[str, ...]:
        return self.value.composite

    @property
    def is_visa(self) -> bool:
        return self in (MRZFormat.MRVA, MRZFormat.MRVB)


def detect_format(lines: Sequence[str]) -> Optional[MRZFormat]:
    """
    Identify the MRZ layout from line geometry.

    Line count and width must match exactly. Visas share geometry with
    TD2/TD3 and are told apart by the leading 'V' document code.

    Returns:
        MRZFormat, or None if no layout matches
    """
    if not lines:
        return None

    widths = {len(line) for line in lines}
    if len(widths) != 1:
        logger.debug(f"MRZ lines have uneven widths: {sorted(widths)}")
        return None

    width = widths.pop()
    candidates: List[MRZFormat] = [
        fmt for fmt in MRZFormat
        if fmt.line_count == len(lines) and fmt.line_width == width
    ]

    if not candidates:
        logger.debug(f"No MRZ format for {len(lines)} line(s) of {width} characters")
        return None

    is_visa = lines[0].startswith("V")
    for fmt in candidates:
        if fmt.is_visa == is_visa or len(candidates) == 1:
            return fmt

    return None
