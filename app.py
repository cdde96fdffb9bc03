"""
MRZ Scanner Web Application / MRZ Microservice
Thin coordinator for the layered MRZ pipeline.

Provides REST API for:
- MRZ extraction and validation from uploaded document images
- Service health and status
"""
from flask import Flask, jsonify, request
from flask_cors import CORS
import base64
import binascii
import cv2
import logging
import numpy as np
import os
from datetime import datetime

# Import layers
from layer1_normalization import ImageNormalizer
from layer2_recognition import TesseractRecognizer
from layer3_mrz import MRZParser
from layer4_session import MRZPipeline

# Import error handling
from error_handlers import (
    ScannerError,
    MRZNotFoundError,
    handle_error
)

# Configuration
TESSDATA_PATH = os.environ.get('TESSDATA_PATH', 'models/')  # Directory containing ocrb.traineddata
TESSERACT_LANG = os.environ.get('TESSERACT_LANG', 'ocrb')
TESSERACT_CMD = os.environ.get('TESSERACT_CMD', '')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')

# Setup logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Enable CORS for cross-origin requests from kiosk clients
CORS(app, origins=CORS_ORIGINS)


class ScannerCoordinator:
    """
    Coordinates the MRZ pipeline across layers
    Thin wrapper that delegates to layer-specific components
    """

    def __init__(self, tessdata_path, lang, tesseract_cmd=None):
        logger.info("Initializing ScannerCoordinator")

        # Layer 2: Recognition
        self.recognizer = TesseractRecognizer(
            tessdata_path=tessdata_path,
            lang=lang,
            tesseract_cmd=tesseract_cmd or None
        )

        # Layers 1-3 chained per image
        self.pipeline = MRZPipeline(
            recognizer=self.recognizer,
            normalizer=ImageNormalizer(),
            parser=MRZParser(ocr_correction=True)
        )

        logger.info("ScannerCoordinator initialized successfully")

    def extract(self, image):
        """
        Execute the MRZ pipeline on a still image

        Args:
            image: BGR document image

        Returns:
            dict: Success response

        Raises:
            MRZNotFoundError: If the image yields no MRZ
            InvalidRegionError: If the image is degenerate
        """
        logger.info("=" * 60)
        logger.info("Starting MRZ extraction pipeline")
        logger.debug(f"Image shape: {image.shape}")

        mrz_result = self.pipeline.scan_image(image)
        if mrz_result is None:
            raise MRZNotFoundError()

        if mrz_result.all_check_digits_valid:
            logger.info(f"[Pipeline] ✓ {mrz_result.format.name} MRZ valid")
        else:
            logger.warning(f"[Pipeline] Check digit mismatch: {mrz_result.invalid_fields}")
        logger.info("=" * 60)

        return {
            "success": True,
            "valid": mrz_result.all_check_digits_valid,
            "data": mrz_result.to_dict(),
            "timestamp": datetime.now().strftime("%Y%m%d_%H%M%S")
        }


def decode_image(data):
    """Decode encoded image bytes (JPEG, PNG, ...) into a BGR array, or None."""
    if not data:
        return None
    buffer = np.frombuffer(data, dtype=np.uint8)
    return cv2.imdecode(buffer, cv2.IMREAD_COLOR)


def read_request_image():
    """
    Read the uploaded image from a multipart 'image' file or a JSON base64 'image' field

    Returns:
        tuple: (image bytes or None, error response or None)
    """
    if 'image' in request.files:
        image_file = request.files['image']
        if image_file.filename == '':
            return None, ({
                "success": False,
                "error": "Empty filename",
                "error_code": "EMPTY_FILENAME"
            }, 400)
        return image_file.read(), None

    payload = request.get_json(silent=True)
    if isinstance(payload, dict) and payload.get('image'):
        encoded = payload['image']
        if ',' in encoded:
            # data:image/png;base64,....
            encoded = encoded.split(',', 1)[1]
        try:
            return base64.b64decode(encoded, validate=True), None
        except (binascii.Error, ValueError):
            return None, ({
                "success": False,
                "error": "Image is not valid base64",
                "error_code": "INVALID_IMAGE"
            }, 400)

    return None, ({
        "success": False,
        "error": "No image provided",
        "error_code": "NO_IMAGE"
    }, 400)


# Initialize scanner coordinator
scanner = ScannerCoordinator(
    tessdata_path=TESSDATA_PATH,
    lang=TESSERACT_LANG,
    tesseract_cmd=TESSERACT_CMD
)


# ============================================================================
# API Endpoints for Microservice Communication
# ============================================================================

@app.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint for service discovery and load balancers"""
    return jsonify({
        "status": "healthy",
        "service": "mrz-service",
        "version": "1.0.0"
    })


@app.route("/api/status", methods=["GET"])
def api_status():
    """Get service status and capabilities"""
    return jsonify({
        "success": True,
        "tessdata_path": TESSDATA_PATH,
        "language": TESSERACT_LANG,
        "formats": ["TD1", "TD2", "TD3", "MRVA", "MRVB"],
        "endpoints": {
            "health": "/health",
            "status": "/api/status",
            "extract": "/api/extract"
        }
    })


@app.route("/api/extract", methods=["POST"])
def api_extract_from_image():
    """
    Extract and validate MRZ data from an uploaded image.

    Request:
        - multipart/form-data with 'image' field containing the document image, or
        - application/json {"image": "<base64>"}

    Response:
        {
            "success": true,
            "valid": true,
            "data": { ... MRZ fields ... },
            "timestamp": "20231231_120000"
        }
    """
    logger.info("API extract request received")

    image_bytes, error = read_request_image()
    if error is not None:
        body, status = error
        return jsonify(body), status

    image = decode_image(image_bytes)
    if image is None:
        return jsonify({
            "success": False,
            "error": "Could not decode image",
            "error_code": "INVALID_IMAGE"
        }), 400

    try:
        response = scanner.extract(image)
        logger.info("API extraction successful")
        return jsonify(response)

    except ScannerError as e:
        logger.error(f"Scanner error during API extraction: {e}")
        return jsonify(handle_error(e)), 422

    except Exception as e:
        return jsonify(handle_error(e, "Unexpected error during API extraction")), 500


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == '__main__':
    logger.info("Flask server starting")
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)), threaded=True)
