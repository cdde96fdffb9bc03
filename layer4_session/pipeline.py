"""
Layer 4 — MRZ Pipeline
Chains the layers for one frame:
normalize -> recognize -> select lines -> parse/validate
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

import numpy as np

from error_handlers import RecognitionError
from layer1_normalization import ImageNormalizer, MRZRegionLocator, Region, crop
from layer2_recognition import TextRecognizer, select_mrz_lines
from layer3_mrz import MRZParser, MRZResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanResult:
    """Successful scan: parsed MRZ plus the document image it came from."""
    mrz_result: MRZResult
    document_image: np.ndarray = field(compare=False)
    timestamp: str = ""

    def to_dict(self) -> Dict:
        """Convert to dictionary for API response (pixel data omitted)."""
        h, w = self.document_image.shape[:2]
        return {
            'timestamp': self.timestamp,
            'document_size': (w, h),
            'mrz': self.mrz_result.to_dict()
        }


class MRZPipeline:
    """
    Stateless per-frame MRZ pipeline.

    Every stage is a pure transform, so one instance can serve any worker.
    """

    def __init__(self, recognizer: TextRecognizer,
                 normalizer: Optional[ImageNormalizer] = None,
                 parser: Optional[MRZParser] = None,
                 locator: Optional[MRZRegionLocator] = None,
                 mrz_band_ratio: float = 0.4,
                 document_margin_ratio: float = 0.05):
        """
        Args:
            recognizer: OCR adapter
            normalizer: Image normalizer (defaults if not provided)
            parser: MRZ parser (defaults if not provided)
            locator: MRZ region locator (defaults if not provided)
            mrz_band_ratio: Share of the cutout height, from the bottom, searched for the MRZ
            document_margin_ratio: Margin added around the MRZ band for the result image
        """
        self.recognizer = recognizer
        self.normalizer = normalizer or ImageNormalizer()
        self.parser = parser or MRZParser()
        self.locator = locator or MRZRegionLocator()
        self.mrz_band_ratio = mrz_band_ratio
        self.document_margin_ratio = document_margin_ratio

    def read_mrz(self, image: np.ndarray) -> Optional[MRZResult]:
        """
        Read the MRZ from an image of the MRZ text block.

        Returns:
            MRZResult, or None if this image yields no MRZ

        Raises:
            InvalidRegionError: If the image is degenerate
        """
        normalized = self.normalizer.normalize(image)

        try:
            text = self.recognizer.recognize(normalized)
        except RecognitionError as e:
            logger.debug(f"No text recognized: {e.message}")
            return None

        lines = select_mrz_lines(text)
        if lines is None:
            logger.debug("No MRZ lines in recognized text")
            return None

        return self.parser.parse(lines)

    def scan_frame(self, frame: np.ndarray, cutout: Optional[Region] = None) -> Optional[ScanResult]:
        """
        Look for an MRZ inside the cutout of a camera frame.

        The MRZ is searched in the bottom band of the cutout; the result
        carries that band enlarged by a small margin.

        Args:
            frame: BGR camera frame
            cutout: Document cutout in frame coordinates (whole frame if None)

        Returns:
            ScanResult, or None if the frame yields no MRZ

        Raises:
            InvalidRegionError: If the frame or cutout is degenerate
        """
        cutout = cutout or Region.full(frame)
        band = cutout.bottom_band(self.mrz_band_ratio).clipped(frame.shape)
        band_image = crop(frame, band)

        mrz_region = self.locator.locate(band_image)
        if mrz_region is None:
            return None

        mrz_result = self.read_mrz(crop(band_image, mrz_region))
        if mrz_result is None:
            return None

        return ScanResult(
            mrz_result=mrz_result,
            document_image=crop(frame, band.enlarged(self.document_margin_ratio)).copy(),
            timestamp=datetime.now().strftime("%Y%m%d_%H%M%S")
        )

    def scan_image(self, image: np.ndarray) -> Optional[MRZResult]:
        """
        Read the MRZ from a still document image.

        Falls back to the whole image when no MRZ block can be located.

        Raises:
            InvalidRegionError: If the image is degenerate
        """
        region = self.locator.locate(image)
        if region is None:
            logger.debug("MRZ block not located, reading the whole image")
            return self.read_mrz(image)

        return self.read_mrz(crop(image, region))
