"""
API tests for the institution export endpoints.
"""
import io

from openpyxl import load_workbook
from prometheus_client import REGISTRY

from app.api.dependencies import download_store
from app.services.exporters.base_exporter import MSG_EMPTY
from app.services.exporters.spreadsheet_exporter import XLSX_CONTENT_TYPE
from app.services.exporters.validator import MSG_FORMAT_INVALID

EXPORT_URL = "/api/institutions/export"


class TestExportStreaming:
    def test_excel_streamed_as_attachment(self, client, payload):
        response = client.post(EXPORT_URL, json=payload)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(XLSX_CONTENT_TYPE)
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="instituciones_')
        assert disposition.endswith('.xlsx"')
        wb = load_workbook(io.BytesIO(response.content))
        assert wb["Instituciones"].cell(row=6, column=1).value == "Colegio San Martín"

    def test_pdf_streamed(self, client, payload):
        payload["options"] = {"format": "pdf"}
        response = client.post(EXPORT_URL, json=payload)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_invalid_format_is_bad_request(self, client, payload):
        payload["options"] = {"format": "docx"}
        response = client.post(EXPORT_URL, json=payload)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "DATA_ERROR"
        assert response.json()["detail"]["message"] == MSG_FORMAT_INVALID

    def test_empty_listing_is_bad_request(self, client, payload):
        payload["institutions"] = []
        response = client.post(EXPORT_URL, json=payload)

        assert response.status_code == 400
        assert response.json()["detail"]["message"] == MSG_EMPTY

    def test_unknown_delivery_mode_rejected(self, client, payload):
        response = client.post(f"{EXPORT_URL}?delivery=email", json=payload)
        assert response.status_code == 422


class TestExportDownloadUrl:
    def test_published_url_serves_file_until_released(self, client, payload):
        response = client.post(f"{EXPORT_URL}?delivery=url", json=payload)

        assert response.status_code == 200
        body = response.json()
        assert body["filename"].endswith(".xlsx")
        assert body["url"].startswith(f"{EXPORT_URL}/downloads/")
        assert body["size_bytes"] > 0

        download = client.get(body["url"])
        assert download.status_code == 200
        assert len(download.content) == body["size_bytes"]
        assert "attachment" in download.headers["content-disposition"]

        download_store.release(body["url"].rsplit("/", 1)[-1])
        assert client.get(body["url"]).status_code == 404

    def test_unknown_token_is_not_found(self, client):
        assert client.get(f"{EXPORT_URL}/downloads/nope").status_code == 404

    def test_disabled_downloads_are_forbidden(self, client, payload):
        download_store.enabled = False
        response = client.post(f"{EXPORT_URL}?delivery=url", json=payload)

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "PERMISSION_ERROR"


class TestValidateAndSummary:
    def test_validate_reports_errors(self, client):
        response = client.post(f"{EXPORT_URL}/validate", json={"format": "docx"})
        assert response.json() == {"valid": False, "errors": [MSG_FORMAT_INVALID]}

    def test_validate_accepts_good_options(self, client):
        response = client.post(f"{EXPORT_URL}/validate", json={"format": "pdf", "includeStats": True})
        assert response.json() == {"valid": True, "errors": []}

    def test_summary(self, client, payload):
        payload["options"] = {"format": "pdf", "includeStats": True}
        response = client.post(f"{EXPORT_URL}/summary", json=payload)

        assert response.status_code == 200
        body = response.json()
        assert body["total_institutions"] == 2
        assert body["format"] == "PDF (.pdf)"
        assert body["include_stats"] is True
        assert body["estimated_size"] == "1000 B"


class TestStatsCache:
    def test_received_stats_are_cached_and_reused(self, client, payload, admin_headers):
        payload["options"] = {"format": "excel", "includeStats": True}
        payload["stats"] = {"inst-1": {"courses_count": 4, "students_count": 100, "professors_count": 8}}
        assert client.post(EXPORT_URL, json=payload).status_code == 200

        listing = client.get("/api/institutions/stats/cache", headers=admin_headers).json()
        assert [entry["institution_id"] for entry in listing] == ["inst-1"]

        # second export without stats picks them up from the cache
        del payload["stats"]
        response = client.post(EXPORT_URL, json=payload)
        sheet = load_workbook(io.BytesIO(response.content))["Instituciones"]
        assert sheet.cell(row=6, column=7).value == "Cursos"
        assert sheet.cell(row=7, column=7).value == 4

    def test_invalidation(self, client, payload, admin_headers):
        payload["options"] = {"format": "excel", "includeStats": True}
        payload["stats"] = {"inst-1": {}, "inst-2": {}}
        client.post(EXPORT_URL, json=payload)

        one = client.delete("/api/institutions/stats/cache/inst-1", headers=admin_headers)
        assert one.json()["removed"] == 1
        everything = client.delete("/api/institutions/stats/cache", headers=admin_headers)
        assert everything.json()["removed"] == 1

    def test_cache_endpoints_require_admin_key(self, client):
        assert client.get("/api/institutions/stats/cache").status_code == 403
        assert client.delete("/api/institutions/stats/cache").status_code == 403


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_metrics_exposed(client, payload):
    client.post(EXPORT_URL, json=payload)
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "export_requests_total" in response.text


def test_unsupported_format_counted_as_unknown(client, payload):
    def requests_for(fmt):
        return REGISTRY.get_sample_value("export_requests_total", {"format": fmt, "delivery": "stream"}) or 0

    before = requests_for("unknown")
    payload["options"] = {"format": "xlsx-with-macros"}
    assert client.post(EXPORT_URL, json=payload).status_code == 400

    assert requests_for("unknown") == before + 1
    assert REGISTRY.get_sample_value(
        "export_requests_total", {"format": "xlsx-with-macros", "delivery": "stream"}
    ) is None
