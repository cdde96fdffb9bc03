"""
Pytest configuration and fixtures for MRZ scanner tests.
"""
import os
import sys
from datetime import date

import cv2
import numpy as np
import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(__file__))

from error_handlers import RecognitionError  # noqa: E402
from layer2_recognition import TextRecognizer  # noqa: E402
from layer3_mrz import MRZParser  # noqa: E402


class StaticRecognizer(TextRecognizer):
    """Recognizer returning canned text, or failing when text is None."""

    def __init__(self, text):
        self.text = text
        self.calls = 0

    def recognize(self, image):
        self.calls += 1
        if self.text is None:
            raise RecognitionError("empty output")
        return self.text


@pytest.fixture
def make_recognizer():
    """Factory for canned-text recognizers."""
    return StaticRecognizer


@pytest.fixture
def reference_date():
    """Fixed 'today' so century resolution is stable."""
    return date(2026, 1, 1)


@pytest.fixture
def parser(reference_date):
    """MRZ parser with OCR correction and a fixed reference date."""
    return MRZParser(ocr_correction=True, reference_date=reference_date)


@pytest.fixture
def sample_mrz_td3():
    """ICAO 9303 TD3 specimen (passport)."""
    return [
        "P<UTOERIKSSON<<ANNA<MARIA<<<<<<<<<<<<<<<<<<<",
        "L898902C<3UTO6908061F9406236ZE184226B<<<<<14"
    ]


@pytest.fixture
def sample_mrz_td1():
    """ICAO 9303 TD1 specimen (ID card)."""
    return [
        "I<UTOD231458907<<<<<<<<<<<<<<<",
        "7408122F1204159UTO<<<<<<<<<<<6",
        "ERIKSSON<<ANNA<MARIA<<<<<<<<<<",
    ]


@pytest.fixture
def sample_mrz_td2():
    """ICAO 9303 TD2 specimen (ID card)."""
    return [
        "I<UTOERIKSSON<<ANNA<MARIA".ljust(36, "<"),
        "D231458907UTO7408122F1204159<<<<<<<6",
    ]


@pytest.fixture
def sample_mrz_mrva():
    """ICAO 9303 MRV-A specimen (visa)."""
    return [
        "V<UTOERIKSSON<<ANNA<MARIA".ljust(44, "<"),
        "L8988901C4XXX4009078F96121096ZE184226B".ljust(44, "<"),
    ]


@pytest.fixture
def sample_mrz_mrvb():
    """ICAO 9303 MRV-B specimen (visa)."""
    return [
        "V<UTOERIKSSON<<ANNA<MARIA".ljust(36, "<"),
        "L8988901C4XXX4009078F9612109".ljust(36, "<"),
    ]


def render_mrz(lines, band_height=200, top_padding=300):
    """
    Draw MRZ lines as dark text near the bottom of a white image.
    The image is just wide enough for the text plus a 20px margin each side.
    """
    font = cv2.FONT_HERSHEY_SIMPLEX
    scale, thickness = 0.8, 2
    text_width = max(cv2.getTextSize(line, font, scale, thickness)[0][0] for line in lines)
    width = text_width + 40
    height = top_padding + band_height

    image = np.full((height, width, 3), 255, dtype=np.uint8)
    y = top_padding + band_height // 2
    for line in lines:
        cv2.putText(image, line, (20, y), font, scale, (0, 0, 0), thickness, cv2.LINE_AA)
        y += 40
    return image


@pytest.fixture
def mrz_frame(sample_mrz_td3):
    """Camera-like frame with a TD3 MRZ in its bottom band."""
    return render_mrz(sample_mrz_td3)


@pytest.fixture
def app():
    """Create Flask test application."""
    from app import app as flask_app
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


@pytest.fixture
def sample_png():
    """Encoded PNG of a plain gray page."""
    ok, buffer = cv2.imencode(".png", np.full((60, 200, 3), 200, dtype=np.uint8))
    assert ok
    return buffer.tobytes()
