"""
Layer 3 — MRZ Parser
Component: Field parser and validator
Responsibility: Decode fixed-width MRZ fields and verify check digits
"""
import logging
import string
from datetime import date
from types import MappingProxyType
from typing import Dict, Optional, Sequence

from .check_digits import verify
from .correction import correct_field
from .formats import FILLER, FieldDescriptor, FieldType, MRZFormat, detect_format
from .result import HolderName, MRZResult, ParsedField

logger = logging.getLogger(__name__)


def resolve_century(two_digit_year: int, future_years: int, reference: date) -> int:
    """
    Expand a YY year to the latest year not after ``reference.year + future_years``.

    Birth dates use 0 (never in the future), expiry dates 20.
    """
    latest = reference.year + future_years
    return latest - (latest - two_digit_year) % 100


def parse_names(value: str) -> Optional[HolderName]:
    """
    Split a name field into primary and secondary identifiers.

    'ERIKSSON<<ANNA<MARIA<<<' -> HolderName('ERIKSSON', ('ANNA', 'MARIA'))
    """
    value = value.strip(FILLER)
    if not value:
        return None

    primary, _, secondary = value.partition(FILLER * 2)
    surname = " ".join(part for part in primary.split(FILLER) if part)
    given_names = tuple(part for part in secondary.split(FILLER) if part)
    return HolderName(surname=surname, given_names=given_names)


class MRZParser:
    """Parses and validates MRZ lines of any supported format"""

    def __init__(self, ocr_correction: bool = True, reference_date: Optional[date] = None):
        """
        Initialize MRZ parser

        Args:
            ocr_correction: Fix letter/digit confusions before decoding
            reference_date: Date used to pick the century of YYMMDD fields (default: today)
        """
        self.ocr_correction = ocr_correction
        self._reference_date = reference_date

    @property
    def reference_date(self) -> date:
        return self._reference_date or date.today()

    def parse(self, lines: Sequence[str]) -> Optional[MRZResult]:
        """
        Parse MRZ lines.

        Args:
            lines: Candidate MRZ lines, top to bottom

        Returns:
            MRZResult, or None if the line geometry matches no known format
        """
        mrz_format = detect_format(lines)
        if mrz_format is None:
            return None

        logger.debug(f"Detected MRZ format: {mrz_format.name}")

        raw: Dict[str, str] = {}
        corrected: Dict[str, str] = {}
        for descriptor in mrz_format.fields:
            raw[descriptor.name] = descriptor.extract(lines)
            corrected[descriptor.name] = (
                correct_field(raw[descriptor.name], descriptor.kind)
                if self.ocr_correction else raw[descriptor.name]
            )

        checks: Dict[str, Optional[bool]] = {}
        for descriptor in mrz_format.fields:
            if descriptor.checked:
                checks[descriptor.name] = verify(
                    corrected[descriptor.name],
                    corrected[descriptor.check_field],
                    optional=descriptor.optional
                )

        if mrz_format.composite:
            composite_data = "".join(corrected[name] for name in mrz_format.composite)
            checks["composite_check"] = verify(composite_data, corrected["composite_check"])

        all_valid = all(outcome is not False for outcome in checks.values())

        fields = {
            descriptor.name: ParsedField(
                name=descriptor.name,
                raw=raw[descriptor.name],
                corrected=corrected[descriptor.name],
                value=self._decode(descriptor, corrected[descriptor.name]),
                check_digit_valid=checks.get(descriptor.name)
            )
            for descriptor in mrz_format.fields
        }

        result = MRZResult(
            format=mrz_format,
            fields=MappingProxyType(fields),
            all_check_digits_valid=all_valid,
            lines=tuple(lines)
        )

        if not all_valid:
            logger.debug(f"Check digit mismatch in: {result.invalid_fields}")

        return result

    def _decode(self, descriptor: FieldDescriptor, value: str):
        kind = descriptor.kind

        if kind is FieldType.DATE:
            return self._decode_date(value, descriptor.future_years)

        if kind is FieldType.CHECK_DIGIT:
            return int(value) if len(value) == 1 and value in string.digits else None

        if kind is FieldType.COMPOSITE:
            return parse_names(value)

        stripped = value.strip(FILLER)
        return stripped or None

    def _decode_date(self, value: str, future_years: int) -> Optional[date]:
        if len(value) != 6 or not all(char in string.digits for char in value):
            return None

        year = resolve_century(int(value[0:2]), future_years, self.reference_date)
        try:
            return date(year, int(value[2:4]), int(value[4:6]))
        except ValueError:
            return None
