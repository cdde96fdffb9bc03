"""
Layer 3 — OCR Correction
Fixes characters the recognizer confuses across classes (O/0, I/1, ...)
when the field type says which class the character must belong to.
"""
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from .formats import FieldType


class CharClass(Enum):
    DIGIT = "digit"
    LETTER = "letter"


# (letter, digit) pairs that read alike in OCR-B
CONFUSABLE_PAIRS = (
    ("O", "0"),
    ("I", "1"),
    ("Z", "2"),
    ("S", "5"),
    ("G", "6"),
    ("B", "8"),
)

# Letters that only ever stand for a digit
_EXTRA_DIGIT_LOOKALIKES = {"Q": "0", "D": "0", "U": "0"}

CONFUSION_TABLE: Mapping[CharClass, Mapping[str, str]] = MappingProxyType({
    CharClass.DIGIT: MappingProxyType({
        **{letter: digit for letter, digit in CONFUSABLE_PAIRS},
        **_EXTRA_DIGIT_LOOKALIKES,
    }),
    CharClass.LETTER: MappingProxyType({digit: letter for letter, digit in CONFUSABLE_PAIRS}),
})

FIELD_CHAR_CLASS: Mapping[FieldType, CharClass] = MappingProxyType({
    FieldType.NUMERIC: CharClass.DIGIT,
    FieldType.DATE: CharClass.DIGIT,
    FieldType.CHECK_DIGIT: CharClass.DIGIT,
    FieldType.ALPHA: CharClass.LETTER,
    FieldType.COUNTRY: CharClass.LETTER,
    FieldType.SEX: CharClass.LETTER,
    FieldType.COMPOSITE: CharClass.LETTER,
})


def correct(value: str, char_class: Optional[CharClass]) -> str:
    """
    Replace characters of the wrong class with their lookalikes.
    The filler '<' is never touched. Applying it twice changes nothing.
    """
    if char_class is None:
        return value

    table = CONFUSION_TABLE[char_class]
    return "".join(table.get(char, char) for char in value)


def correct_field(value: str, kind: FieldType) -> str:
    """Correct a raw field value according to its semantic type."""
    return correct(value, FIELD_CHAR_CLASS.get(kind))
