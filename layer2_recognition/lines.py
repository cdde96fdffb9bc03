"""
Layer 2 — Line Selector
Separates MRZ lines from OCR noise in raw recognizer output.
"""
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)


def select_mrz_lines(recognized_text: str) -> Optional[List[str]]:
    """
    Clean recognizer output into candidate MRZ lines.

    MRZ lines are fixed-width, while text bleeding in from the document
    above or below the MRZ is not, so lines shorter than the average line
    are dropped. The filter repeats until it no longer drops anything,
    which keeps it stable when fed its own output.

    Args:
        recognized_text: Multi-line recognizer output

    Returns:
        list: Candidate MRZ lines in their original order, or None if none remain
    """
    if not recognized_text:
        return None

    text = recognized_text.replace(" ", "")
    lines = [line for line in text.splitlines() if line]

    while lines:
        average_length = sum(len(line) for line in lines) // len(lines)
        kept = [line for line in lines if len(line) >= average_length]
        if len(kept) == len(lines):
            break
        logger.debug(f"Dropped {len(lines) - len(kept)} short line(s) (average length {average_length})")
        lines = kept

    return lines or None
