"""
Tests for:
  GET /api/v1/reports/{id}.json
  GET /api/v1/reports/{id}.pdf
  GET /api/v1/reports/{id}/charts
"""

import json

from tests.conftest import make_analysis


def _seed(client):
    return client.app.state.history.add(make_analysis(), "data:image/jpeg;base64,AAAA")


def test_json_report(client):
    _seed(client)
    response = client.get("/api/v1/reports/req-123.json")

    assert response.status_code == 200
    assert 'filename="itl-deepfake-analysis-clip.mp4-2026-03-01.json"' in response.headers["content-disposition"]
    data = json.loads(response.content)
    assert data["id"] == "req-123"
    assert "thumbnail_blob" not in data
    assert data["explanation"]["reasons"]


def test_pdf_report(client):
    _seed(client)
    response = client.get("/api/v1/reports/req-123.pdf?include_raw_data=true")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


def test_chart_data(client):
    _seed(client)
    data = client.get("/api/v1/reports/req-123/charts").json()

    assert data["confidence_level"]["label"] == "High Risk"
    assert [p["confidence"] for p in data["timeline"]] == [40, 95]


def test_unknown_report_is_404(client):
    for path in ("/api/v1/reports/nope.json", "/api/v1/reports/nope.pdf", "/api/v1/reports/nope/charts"):
        response = client.get(path)
        assert response.status_code == 404
        assert response.json()["detail"] == "Report not found."
