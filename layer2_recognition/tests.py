"""
Tests for Layer 2 — recognition adapter and line selection.
"""
import numpy as np
import pytesseract
import pytest

from error_handlers import RecognitionError
from layer2_recognition import MRZ_ALPHABET, TesseractRecognizer, select_mrz_lines


class TestLineSelector:
    """Test MRZ line selection."""

    def test_garbage_line_between_mrz_lines(self, sample_mrz_td3):
        """Test a short noise line is discarded."""
        text = f"{sample_mrz_td3[0]}\nK4<\n{sample_mrz_td3[1]}\n"
        assert select_mrz_lines(text) == sample_mrz_td3

    def test_header_text_above_mrz(self, sample_mrz_td3):
        """Test document text bleeding in above the MRZ is discarded."""
        text = "PASSPORT\nUTOPIA\n\n" + "\n".join(sample_mrz_td3)
        assert select_mrz_lines(text) == sample_mrz_td3

    def test_spaces_are_removed(self, sample_mrz_td3):
        """Test spaces inserted by the recognizer are stripped."""
        text = "P<UTO ERIKSSON << ANNA<MARIA" + "<" * 19 + "\n" + sample_mrz_td3[1]
        assert select_mrz_lines(text)[0] == sample_mrz_td3[0]

    def test_order_is_preserved(self, sample_mrz_td1):
        """Test lines keep their order."""
        assert select_mrz_lines("\n".join(sample_mrz_td1)) == sample_mrz_td1

    def test_idempotent(self):
        """Test feeding the output back gives the same output."""
        text = "AAAAAAAAAA\nBBBBBBBBBB\nCCCCCCC\nDD\n"
        once = select_mrz_lines(text)
        twice = select_mrz_lines("\n".join(once))
        assert once == twice == ["AAAAAAAAAA", "BBBBBBBBBB"]

    def test_nothing_left(self):
        """Test empty output is a normal negative result."""
        assert select_mrz_lines("") is None
        assert select_mrz_lines("  \n\n \n") is None
        assert select_mrz_lines(None) is None

    def test_carriage_returns(self, sample_mrz_td3):
        """Test Windows line endings."""
        assert select_mrz_lines("\r\n".join(sample_mrz_td3)) == sample_mrz_td3


class TestTesseractRecognizer:
    """Test the Tesseract adapter."""

    def test_config_restricts_alphabet(self):
        """Test tesseract is limited to MRZ characters."""
        recognizer = TesseractRecognizer(tessdata_path="models", lang="ocrb")
        assert f"tessedit_char_whitelist={MRZ_ALPHABET}" in recognizer.config
        assert "--tessdata-dir" in recognizer.config
        assert "--psm 6" in recognizer.config

    def test_no_tessdata_dir_by_default(self):
        """Test system tessdata is used when no path is given."""
        assert "--tessdata-dir" not in TesseractRecognizer().config

    def test_recognize_returns_text(self, monkeypatch, sample_mrz_td3):
        """Test recognized text is passed through."""
        calls = {}

        def fake_image_to_string(image, lang=None, config=''):
            calls['lang'] = lang
            return "\n".join(sample_mrz_td3) + "\n\f"

        monkeypatch.setattr(pytesseract, "image_to_string", fake_image_to_string)
        text = TesseractRecognizer(lang="mrz").recognize(np.zeros((10, 10), dtype=np.uint8))

        assert sample_mrz_td3[0] in text
        assert calls['lang'] == "mrz"

    def test_empty_output_raises(self, monkeypatch):
        """Test empty output is a recognition failure."""
        monkeypatch.setattr(pytesseract, "image_to_string", lambda *a, **kw: " \n\f")
        with pytest.raises(RecognitionError):
            TesseractRecognizer().recognize(np.zeros((10, 10), dtype=np.uint8))

    def test_engine_error_raises(self, monkeypatch):
        """Test engine errors become recognition failures."""
        def broken(*args, **kwargs):
            raise pytesseract.TesseractNotFoundError()

        monkeypatch.setattr(pytesseract, "image_to_string", broken)
        with pytest.raises(RecognitionError) as excinfo:
            TesseractRecognizer().recognize(np.zeros((10, 10), dtype=np.uint8))
        assert excinfo.value.error_code == "RECOGNITION_FAILED"
