"""
Tests for the MRZ microservice Flask application.
"""
import base64
import io
import json

import pytest

import app as app_module
from conftest import StaticRecognizer


@pytest.fixture
def recognized_text(monkeypatch):
    """Replace the service recognizer with one returning the given text."""
    def install(text):
        recognizer = StaticRecognizer(text)
        monkeypatch.setattr(app_module.scanner.pipeline, "recognizer", recognizer)
        return recognizer
    return install


class TestHealthEndpoint:
    """Test health check endpoint."""

    def test_health_returns_ok(self, client):
        """Test /health returns OK status."""
        response = client.get('/health')
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert data['service'] == 'mrz-service'


class TestStatusEndpoint:
    """Test service status endpoint."""

    def test_status_lists_formats(self, client):
        response = client.get('/api/status')
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['success'] is True
        assert set(data['formats']) == {"TD1", "TD2", "TD3", "MRVA", "MRVB"}
        assert data['endpoints']['extract'] == '/api/extract'


class TestExtractEndpoint:
    """Test MRZ extraction endpoint."""

    def test_extract_requires_image(self, client):
        """Test /api/extract requires image data."""
        response = client.post('/api/extract', json={})
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['error_code'] == 'NO_IMAGE'

    def test_extract_rejects_plain_text(self, client):
        response = client.post('/api/extract', data="hello", content_type='text/plain')
        assert response.status_code == 400

    def test_extract_rejects_bad_base64(self, client):
        response = client.post('/api/extract', json={'image': '***not base64***'})
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'INVALID_IMAGE'

    def test_extract_rejects_undecodable_image(self, client):
        """Test valid base64 that is not an image."""
        encoded = base64.b64encode(b"definitely not a picture").decode()
        response = client.post('/api/extract', json={'image': encoded})
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'INVALID_IMAGE'

    def test_extract_base64(self, client, recognized_text, sample_png, sample_mrz_td3):
        """Test /api/extract accepts base64 image and returns MRZ fields."""
        recognized_text("\n".join(sample_mrz_td3))
        encoded = base64.b64encode(sample_png).decode()

        response = client.post('/api/extract', json={'image': encoded})

        assert response.status_code == 200
        assert response.content_type == 'application/json'
        data = json.loads(response.data)
        assert data['success'] is True
        assert data['valid'] is True
        assert data['data']['format'] == 'TD3'
        assert data['data']['surname'] == 'ERIKSSON'
        assert data['data']['birth_date'] == '1969-08-06'

    def test_extract_data_url(self, client, recognized_text, sample_png, sample_mrz_td3):
        """Test data: URL prefixes are stripped."""
        recognized_text("\n".join(sample_mrz_td3))
        encoded = "data:image/png;base64," + base64.b64encode(sample_png).decode()

        response = client.post('/api/extract', json={'image': encoded})
        assert response.status_code == 200

    def test_extract_multipart(self, client, recognized_text, sample_png, sample_mrz_td1):
        """Test multipart upload."""
        recognized_text("\n".join(sample_mrz_td1))

        response = client.post(
            '/api/extract',
            data={'image': (io.BytesIO(sample_png), 'card.png')},
            content_type='multipart/form-data'
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['data']['format'] == 'TD1'
        assert data['data']['document_number'] == 'D23145890'

    def test_extract_no_mrz(self, client, recognized_text, sample_png):
        """Test text without MRZ structure is MRZ_NOT_FOUND."""
        recognized_text("PASSPORT\nUTOPIA")
        encoded = base64.b64encode(sample_png).decode()

        response = client.post('/api/extract', json={'image': encoded})

        assert response.status_code == 422
        data = json.loads(response.data)
        assert data['success'] is False
        assert data['error_code'] == 'MRZ_NOT_FOUND'

    def test_extract_reports_invalid_check_digits(self, client, recognized_text,
                                                  sample_png, sample_mrz_td3):
        """Test a parsed MRZ with a bad check digit is returned but not valid."""
        line = sample_mrz_td3[1]
        recognized_text(sample_mrz_td3[0] + "\n" + line[:19] + "2" + line[20:])
        encoded = base64.b64encode(sample_png).decode()

        response = client.post('/api/extract', json={'image': encoded})

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['valid'] is False
        assert data['data']['fields']['birth_date']['check_digit_valid'] is False

    def test_extract_get_not_allowed(self, client):
        assert client.get('/api/extract').status_code == 405

    def test_unknown_route(self, client):
        assert client.get('/api/unknown').status_code == 404
