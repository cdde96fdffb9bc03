"""
Layer 3 — Check Digits
ICAO 9303 check digit: 7-3-1 weighted sum modulo 10.
"""
import string
from typing import Optional

from .formats import FILLER

WEIGHTS = (7, 3, 1)


def char_value(char: str) -> int:
    """
    Numeric value of an MRZ character: digits as is, A=10 ... Z=35, '<' = 0.

    Raises:
        ValueError: For characters outside the MRZ alphabet
    """
    if char in string.digits:
        return int(char)
    if char in string.ascii_uppercase:
        return ord(char) - ord("A") + 10
    if char == FILLER:
        return 0
    raise ValueError(f"Invalid MRZ character: {char!r}")


def compute_check_digit(data: str) -> int:
    """
    Compute the check digit of a field.

    Raises:
        ValueError: If data contains characters outside the MRZ alphabet
    """
    total = sum(char_value(char) * WEIGHTS[i % 3] for i, char in enumerate(data))
    return total % 10


def verify(data: str, check_char: str, optional: bool = False) -> Optional[bool]:
    """
    Compare the computed check digit against the declared one.

    Args:
        data: Protected field value
        check_char: Declared check digit character
        optional: Whether a filler check digit means "not applicable"

    Returns:
        True/False, or None when the check does not apply
    """
    if check_char == FILLER:
        # Unused optional data may carry a filler instead of a digit
        return None if optional else False

    if len(check_char) != 1 or check_char not in string.digits:
        return False

    try:
        return compute_check_digit(data) == int(check_char)
    except ValueError:
        return False
