"""
Error Handling System
Provides consistent error responses across all layers
"""
import logging

logger = logging.getLogger(__name__)


class ScannerError(Exception):
    """Base exception for scanner errors"""
    def __init__(self, message, error_code, details=None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        """Convert error to JSON-serializable dict"""
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


# Layer 1 Errors - Normalization
class NormalizationError(ScannerError):
    """Image normalization errors"""
    pass


class InvalidRegionError(NormalizationError):
    """Degenerate image region handed to the normalizer"""
    def __init__(self, shape=None):
        super().__init__(
            message="Image region is empty or degenerate",
            error_code="INVALID_REGION",
            details={
                "shape": list(shape) if shape is not None else None,
                "suggestion": "Skip this frame and continue with the next one"
            }
        )


# Layer 2 Errors - Recognition
class RecognitionError(ScannerError):
    """Text recognizer returned nothing usable"""
    def __init__(self, reason):
        super().__init__(
            message=f"Text recognition failed: {reason}",
            error_code="RECOGNITION_FAILED",
            details={
                "reason": str(reason),
                "suggestion": "Check OCR engine installation and tessdata path"
            }
        )


# Layer 3 Errors - MRZ
class MRZError(ScannerError):
    """MRZ extraction errors"""
    pass


class MRZNotFoundError(MRZError):
    """No MRZ data found in image"""
    def __init__(self):
        super().__init__(
            message="No MRZ data found in the image",
            error_code="MRZ_NOT_FOUND",
            details={
                "suggestion": "Ensure passport MRZ area is clearly visible and in focus"
            }
        )


# Error response helpers
def handle_error(error, log_message=None):
    """
    Handle error consistently across the application

    Args:
        error: Exception that occurred
        log_message: Optional custom log message

    Returns:
        dict: Error response for JSON serialization
    """
    if log_message:
        logger.error(log_message)

    if isinstance(error, ScannerError):
        # Known scanner error
        logger.error(f"{error.error_code}: {error.message}")
        if error.details:
            logger.debug(f"Error details: {error.details}")
        return error.to_dict()
    else:
        # Unexpected error
        logger.error(f"Unexpected error: {error}")
        logger.exception("Full traceback:")
        return {
            "success": False,
            "error": "An unexpected error occurred",
            "error_code": "UNEXPECTED_ERROR",
            "details": {
                "error_type": type(error).__name__,
                "error_message": str(error)
            }
        }
