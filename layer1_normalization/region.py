"""
Layer 1 — MRZ Region
Cutout geometry and MRZ text-band location inside a captured frame.
"""
import cv2
import numpy as np
import logging
from typing import List, Optional, Tuple
from dataclasses import dataclass

from error_handlers import InvalidRegionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Region:
    """Axis-aligned rectangle in pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def full(cls, image: np.ndarray) -> 'Region':
        """Region covering the whole image."""
        h, w = image.shape[:2]
        return cls(0, 0, w, h)

    @property
    def area(self) -> int:
        return max(self.width, 0) * max(self.height, 0)

    def union(self, other: 'Region') -> 'Region':
        x0 = min(self.x, other.x)
        y0 = min(self.y, other.y)
        x1 = max(self.x + self.width, other.x + other.width)
        y1 = max(self.y + self.height, other.y + other.height)
        return Region(x0, y0, x1 - x0, y1 - y0)

    def bottom_band(self, ratio: float) -> 'Region':
        """Bottom part of the region, ``ratio`` of its height."""
        band_height = int(round(self.height * ratio))
        return Region(self.x, self.y + self.height - band_height, self.width, band_height)

    def enlarged(self, margin_ratio: float) -> 'Region':
        """Grow the region on every side by ``margin_ratio`` of its height."""
        margin = int(round(self.height * margin_ratio))
        return Region(
            self.x - margin,
            self.y - margin,
            self.width + 2 * margin,
            self.height + 2 * margin
        )

    def clipped(self, shape: Tuple[int, ...]) -> 'Region':
        """Intersection with an image of the given shape."""
        h, w = shape[:2]
        x0 = min(max(self.x, 0), w)
        y0 = min(max(self.y, 0), h)
        x1 = min(max(self.x + self.width, 0), w)
        y1 = min(max(self.y + self.height, 0), h)
        return Region(x0, y0, x1 - x0, y1 - y0)

    def to_dict(self):
        return {'x': self.x, 'y': self.y, 'width': self.width, 'height': self.height}


def crop(image: np.ndarray, region: Region) -> np.ndarray:
    """
    Crop a region out of an image, clipped to the image bounds.

    Raises:
        InvalidRegionError: If the clipped region has zero area
    """
    if image is None or image.size == 0:
        raise InvalidRegionError(None if image is None else image.shape)

    clipped = region.clipped(image.shape)
    if clipped.area == 0:
        raise InvalidRegionError((clipped.height, clipped.width))

    return image[clipped.y:clipped.y + clipped.height, clipped.x:clipped.x + clipped.width]


class MRZRegionLocator:
    """
    Finds the MRZ text block inside a document crop.

    Text rows are found with a blackhat/gradient morphology pass. Only rows
    spanning most of the crop width are MRZ candidates; their union is the
    MRZ region.
    """

    def __init__(self, min_width_ratio: float = 0.8, max_height_ratio: float = 0.5):
        """
        Args:
            min_width_ratio: Text rows narrower than this share of the crop are ignored
            max_height_ratio: Unions taller than this share of the crop are rejected
        """
        self.min_width_ratio = min_width_ratio
        self.max_height_ratio = max_height_ratio

    def text_rectangles(self, image: np.ndarray) -> List[Region]:
        """Bounding rectangles of text rows in the image."""
        if len(image.shape) == 3:
            gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        else:
            gray = image

        H, W = gray.shape
        rect_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (max(13, W // 40), 5))
        sq_size = max(5, min(21, H // 10))
        sq_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (sq_size, sq_size))

        # Dark text on a light background
        gray = cv2.GaussianBlur(gray, (3, 3), 0)
        blackhat = cv2.morphologyEx(gray, cv2.MORPH_BLACKHAT, rect_kernel)

        grad = cv2.Sobel(blackhat, ddepth=cv2.CV_32F, dx=1, dy=0, ksize=-1)
        grad = np.absolute(grad)
        (min_val, max_val) = (np.min(grad), np.max(grad))
        if max_val - min_val == 0:
            return []
        grad = ((grad - min_val) / (max_val - min_val) * 255).astype("uint8")

        grad = cv2.morphologyEx(grad, cv2.MORPH_CLOSE, rect_kernel)
        thresh = cv2.threshold(grad, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)[1]
        thresh = cv2.morphologyEx(thresh, cv2.MORPH_CLOSE, sq_kernel)
        thresh = cv2.erode(thresh, None, iterations=2)

        contours, _ = cv2.findContours(thresh, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        return [Region(*cv2.boundingRect(c)) for c in contours]

    def locate(self, image: np.ndarray) -> Optional[Region]:
        """
        Locate the MRZ block.

        Returns:
            Region of the MRZ block, or None if nothing MRZ-like was found
        """
        if image is None or image.size == 0:
            raise InvalidRegionError(None if image is None else image.shape)

        H, W = image.shape[:2]
        wide = [r for r in self.text_rectangles(image) if r.width > W * self.min_width_ratio]

        if not wide:
            logger.debug("No MRZ-wide text rows found")
            return None

        region = wide[0]
        for rect in wide[1:]:
            region = region.union(rect)

        # Long header text can make the union swallow the whole document
        if region.height > H * self.max_height_ratio:
            logger.debug(f"MRZ candidate too tall: {region.height}px of {H}px")
            return None

        logger.debug(f"MRZ region located: {region.to_dict()}")
        return region
