"""
Layer 3 — MRZ Result
Immutable containers for parsed MRZ data.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .formats import MRZFormat


@dataclass(frozen=True)
class HolderName:
    """Decoded name field: primary identifier and secondary identifiers."""
    surname: str
    given_names: Tuple[str, ...] = ()

    @property
    def components(self) -> Tuple[str, ...]:
        return (self.surname, *self.given_names)

    def __str__(self):
        return " ".join(n for n in (" ".join(self.given_names), self.surname) if n)


@dataclass(frozen=True)
class ParsedField:
    """One MRZ field as read, corrected and decoded."""
    name: str
    raw: str
    corrected: str
    value: Any
    check_digit_valid: Optional[bool] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary for API response."""
        value = self.value
        if isinstance(value, date):
            value = value.isoformat()
        elif isinstance(value, HolderName):
            value = {'surname': value.surname, 'given_names': list(value.given_names)}

        return {
            'raw': self.raw,
            'corrected': self.corrected,
            'value': value,
            'check_digit_valid': self.check_digit_valid
        }


@dataclass(frozen=True)
class MRZResult:
    """
    Parsed MRZ of one document.

    Check digit outcomes are settled by the parser before construction;
    ``fields`` is a read-only mapping in MRZ order.
    """
    format: MRZFormat
    fields: Mapping[str, ParsedField]
    all_check_digits_valid: bool
    lines: Tuple[str, ...] = field(default=(), compare=False)

    def __getitem__(self, name: str) -> ParsedField:
        return self.fields[name]

    def value(self, name: str, default=None):
        """Decoded value of a field, or default if the format lacks it."""
        parsed = self.fields.get(name)
        return parsed.value if parsed is not None else default

    @property
    def invalid_fields(self) -> List[str]:
        """Names of fields whose check digit did not match."""
        return [name for name, f in self.fields.items() if f.check_digit_valid is False]

    @property
    def document_type(self) -> Optional[str]:
        return self.value("document_type")

    @property
    def issuing_country(self) -> Optional[str]:
        return self.value("issuing_country")

    @property
    def surname(self) -> Optional[str]:
        name = self.value("names")
        return name.surname if name else None

    @property
    def given_names(self) -> Tuple[str, ...]:
        name = self.value("names")
        return name.given_names if name else ()

    @property
    def document_number(self) -> Optional[str]:
        return self.value("document_number")

    @property
    def nationality(self) -> Optional[str]:
        return self.value("nationality")

    @property
    def birth_date(self) -> Optional[date]:
        return self.value("birth_date")

    @property
    def sex(self) -> Optional[str]:
        return self.value("sex")

    @property
    def expiry_date(self) -> Optional[date]:
        return self.value("expiry_date")

    @property
    def optional_data(self) -> Optional[str]:
        return self.value("optional_data")

    def to_dict(self) -> Dict:
        """Convert to dictionary for API response."""
        birth_date = self.birth_date
        expiry_date = self.expiry_date
        return {
            'format': self.format.name,
            'document_type': self.document_type,
            'issuing_country': self.issuing_country,
            'surname': self.surname,
            'given_names': list(self.given_names),
            'document_number': self.document_number,
            'nationality': self.nationality,
            'birth_date': birth_date.isoformat() if birth_date else None,
            'sex': self.sex,
            'expiry_date': expiry_date.isoformat() if expiry_date else None,
            'optional_data': self.optional_data,
            'all_check_digits_valid': self.all_check_digits_valid,
            'fields': {name: f.to_dict() for name, f in self.fields.items()}
        }
