"""
Layer 1 — Image Normalizer
Adaptive exposure correction, upscaling and luminance binarization.

Turns a colour crop of unknown lighting into a high-contrast, double
resolution black/white image that the text recognizer reads reliably.
"""
import cv2
import numpy as np
import logging
from typing import Dict, Optional
from dataclasses import dataclass

from error_handlers import InvalidRegionError

logger = logging.getLogger(__name__)

# Rec. 709 luma weights in OpenCV channel order (B, G, R)
LUMA_WEIGHTS_BGR = np.array([0.0722, 0.7152, 0.2126], dtype=np.float32)


@dataclass
class NormalizationConfig:
    """Configuration for image normalization."""
    # Exposure
    base_exposure: float = 0.5           # EV applied to every region
    overexposed_luminance: float = 0.8   # Above this, exposure is reduced
    underexposed_luminance: float = 0.35  # Below this, exposure is boosted

    # Binarization
    threshold_exponent: float = 0.2

    # Upscaling
    scale_factor: float = 2.0
    upscale_method: int = cv2.INTER_LANCZOS4


@dataclass(frozen=True)
class NormalizationParams:
    """Parameters derived from the luminance of one region."""
    luminance: float
    exposure: float
    threshold: float

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        return {
            'luminance': round(self.luminance, 4),
            'exposure': round(self.exposure, 4),
            'threshold': round(self.threshold, 4)
        }


def exposure_for(luminance: float, config: Optional[NormalizationConfig] = None) -> float:
    """
    Exposure adjustment (EV) for a scene of the given mean luminance.

    Overexposed scenes get (L - 0.5) * 2 taken off the base exposure,
    underexposed scenes get 2 ** (0.5 - L) added to it.
    """
    cfg = config or NormalizationConfig()
    exposure = cfg.base_exposure

    if luminance > cfg.overexposed_luminance:
        exposure -= (luminance - 0.5) * 2

    if luminance < cfg.underexposed_luminance:
        exposure += 2 ** (0.5 - luminance)

    return exposure


def threshold_for(luminance: float, config: Optional[NormalizationConfig] = None) -> float:
    """Binarization threshold, 1 - (1 - L) ** 0.2."""
    cfg = config or NormalizationConfig()
    return 1 - (1 - luminance) ** cfg.threshold_exponent


def mean_luminance(image: np.ndarray) -> float:
    """
    Mean luminance of an image in [0, 1].

    Args:
        image: BGR or grayscale uint8 image
    """
    pixels = image.astype(np.float32) / 255.0

    if pixels.ndim == 3:
        channel_means = pixels.reshape(-1, pixels.shape[2]).mean(axis=0)
        if channel_means.shape[0] >= 3:
            return float(np.dot(channel_means[:3], LUMA_WEIGHTS_BGR))
        return float(channel_means.mean())

    return float(pixels.mean())


def _srgb_to_linear(values: np.ndarray) -> np.ndarray:
    return np.where(values <= 0.04045, values / 12.92, ((values + 0.055) / 1.055) ** 2.4)


def _linear_to_srgb(values: np.ndarray) -> np.ndarray:
    return np.where(values <= 0.0031308, values * 12.92, 1.055 * np.power(values, 1 / 2.4) - 0.055)


class ImageNormalizer:
    """
    Prepares MRZ text regions for OCR.

    Pipeline:
    1. Exposure adjustment derived from mean luminance
    2. 2x Lanczos upscale (small OCR-B glyphs read better)
    3. Luminance threshold binarization
    """

    def __init__(self, config: Optional[NormalizationConfig] = None):
        """
        Initialize image normalizer.

        Args:
            config: Normalization configuration (uses defaults if not provided)
        """
        self.config = config or NormalizationConfig()
        logger.debug(f"ImageNormalizer initialized: {self.config}")

    def parameters(self, image: np.ndarray) -> NormalizationParams:
        """
        Derive exposure and threshold for a region.

        Raises:
            InvalidRegionError: If the region has zero area
        """
        self._validate(image)
        luminance = mean_luminance(image)

        return NormalizationParams(
            luminance=luminance,
            exposure=exposure_for(luminance, self.config),
            threshold=threshold_for(luminance, self.config)
        )

    def normalize(self, image: np.ndarray) -> np.ndarray:
        """
        Normalize a colour region into a binarized, upscaled image.

        Args:
            image: BGR (or grayscale) uint8 region containing MRZ text

        Returns:
            Single-channel uint8 image with values 0 or 255, twice the size

        Raises:
            InvalidRegionError: If the region has zero area
        """
        params = self.parameters(image)
        logger.debug(f"Normalization parameters: {params.to_dict()}")

        result = self._adjust_exposure(image, params.exposure)
        result = self._upscale(result)
        return self._binarize(result, params.threshold)

    def _validate(self, image: np.ndarray):
        if image is None or image.ndim < 2 or image.size == 0:
            shape = None if image is None else image.shape
            raise InvalidRegionError(shape)

    def _adjust_exposure(self, image: np.ndarray, exposure: float) -> np.ndarray:
        """
        Scale linear-light intensities by 2 ** EV.
        Returns a float32 image in [0, 1] (sRGB encoded).
        """
        pixels = image.astype(np.float32) / 255.0
        linear = _srgb_to_linear(pixels) * (2.0 ** exposure)
        return _linear_to_srgb(np.clip(linear, 0.0, 1.0)).astype(np.float32)

    def _upscale(self, image: np.ndarray) -> np.ndarray:
        cfg = self.config
        h, w = image.shape[:2]
        new_w = max(1, int(round(w * cfg.scale_factor)))
        new_h = max(1, int(round(h * cfg.scale_factor)))

        upscaled = cv2.resize(image, (new_w, new_h), interpolation=cfg.upscale_method)
        logger.debug(f"Upscaled: {w}x{h} -> {new_w}x{new_h}")

        # Lanczos overshoots around hard edges
        return np.clip(upscaled, 0.0, 1.0)

    def _binarize(self, image: np.ndarray, threshold: float) -> np.ndarray:
        """Pixels brighter than the threshold become white, the rest black."""
        if image.ndim == 3:
            luminance = image[..., :3] @ LUMA_WEIGHTS_BGR if image.shape[2] >= 3 else image.mean(axis=2)
        else:
            luminance = image

        return np.where(luminance > threshold, 255, 0).astype(np.uint8)
