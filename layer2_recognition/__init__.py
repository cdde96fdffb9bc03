"""
Layer 2 — Recognition
OCR adapter and MRZ line selection
"""
from .recognizer import TextRecognizer, TesseractRecognizer, MRZ_ALPHABET
from .lines import select_mrz_lines

__all__ = ['TextRecognizer', 'TesseractRecognizer', 'MRZ_ALPHABET', 'select_mrz_lines']
