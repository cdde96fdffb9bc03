"""
Layer 3 — MRZ Parsing
Format detection, OCR correction, field decoding and check digit validation
"""
from .formats import FILLER, FieldDescriptor, FieldType, MRZFormat, detect_format
from .correction import CharClass, correct, correct_field
from .check_digits import compute_check_digit, verify
from .result import HolderName, MRZResult, ParsedField
from .parser import MRZParser, parse_names, resolve_century

__all__ = [
    'FILLER',
    'FieldDescriptor',
    'FieldType',
    'MRZFormat',
    'detect_format',
    'CharClass',
    'correct',
    'correct_field',
    'compute_check_digit',
    'verify',
    'HolderName',
    'MRZResult',
    'ParsedField',
    'MRZParser',
    'parse_names',
    'resolve_century'
]
