"""
Layer 1 — Normalization
Prepares captured frames for text recognition: cutout geometry,
MRZ region location, exposure correction and binarization.
"""
from .normalizer import (
    ImageNormalizer,
    NormalizationConfig,
    NormalizationParams,
    exposure_for,
    threshold_for,
    mean_luminance
)
from .region import Region, MRZRegionLocator, crop

__all__ = [
    'ImageNormalizer',
    'NormalizationConfig',
    'NormalizationParams',
    'exposure_for',
    'threshold_for',
    'mean_luminance',
    'Region',
    'MRZRegionLocator',
    'crop'
]
