"""
Layer 2 — Text Recognizer
Adapter around the OCR engine. The pipeline only depends on
``TextRecognizer.recognize(image) -> str``.
"""
import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
import pytesseract

from error_handlers import RecognitionError

logger = logging.getLogger(__name__)

MRZ_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789<"


class TextRecognizer(ABC):
    """Black-box multi-line text recognizer."""

    @abstractmethod
    def recognize(self, image: np.ndarray) -> str:
        """
        Recognize text in a binarized image region.

        Returns:
            str: Recognized text, one line per text row

        Raises:
            RecognitionError: If the engine fails or returns nothing
        """


class TesseractRecognizer(TextRecognizer):
    """Tesseract OCR restricted to the MRZ character set."""

    def __init__(self, tessdata_path: Optional[str] = None, lang: str = "ocrb",
                 page_segmentation_mode: int = 6, tesseract_cmd: Optional[str] = None):
        """
        Initialize Tesseract recognizer

        Args:
            tessdata_path: Directory containing the traineddata file
            lang: Traineddata name (e.g. "ocrb" or "mrz")
            page_segmentation_mode: Tesseract --psm value (6 = uniform text block)
            tesseract_cmd: Path to the tesseract binary, if not on PATH
        """
        self.tessdata_path = tessdata_path
        self.lang = lang
        self.page_segmentation_mode = page_segmentation_mode

        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

        logger.info("TesseractRecognizer initialized")
        logger.debug(f"Tessdata path: {tessdata_path}, lang: {lang}")

    @property
    def config(self) -> str:
        """Command-line options passed to tesseract."""
        options = [
            f"--psm {self.page_segmentation_mode}",
            f"-c tessedit_char_whitelist={MRZ_ALPHABET}"
        ]
        if self.tessdata_path:
            options.insert(0, f'--tessdata-dir "{os.path.abspath(self.tessdata_path)}"')
        return " ".join(options)

    def recognize(self, image: np.ndarray) -> str:
        try:
            text = pytesseract.image_to_string(image, lang=self.lang, config=self.config)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, RuntimeError) as e:
            raise RecognitionError(e) from e

        if not text or not text.strip():
            raise RecognitionError("empty output")

        logger.debug(f"Recognized {len(text.splitlines())} line(s)")
        return text
