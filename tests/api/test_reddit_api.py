"""Tests for keyword position import, listing, deletion and page scraping."""

from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from snefuru.infrastructure.config import get_settings
from snefuru.infrastructure.scraper import PageFetchError
from snefuru.web.app import get_page_fetcher

POSITIONS_CSV = (
    "Keyword,URL,Position\n"
    "best boots,https://shop.example.com/boots,3\n"
    ",https://missing-keyword.com,5\n"
    "rain jackets,https://shop.example.com/jackets,7\n"
)


def _upload(client, headers, content=POSITIONS_CSV, filename="positions.csv"):
    data = content.encode("utf-8") if isinstance(content, str) else content
    return client.post("/api/reddit/upload-positions", headers=headers,
                       files={"file": (filename, data, "text/csv")})


def _position_ids(client, headers):
    return [p["id"] for p in client.get("/api/reddit/organic-positions", headers=headers).json()]


@pytest.fixture
def fetcher(app):
    fake = MagicMock()
    fake.is_configured = True
    fake.fetch.return_value = "<html>ranking page</html>"
    app.dependency_overrides[get_page_fetcher] = lambda: fake
    return fake


class TestUploadPositions:

    def test_imports_rows_and_reports_skipped(self, client, auth_headers):
        response = _upload(client, auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        assert body["skipped"] == 1
        assert body["message"] == (
            "Successfully imported 2 records. Skipped 1 rows due to missing required data (rows: 3)"
        )

        positions = client.get("/api/reddit/organic-positions", headers=auth_headers).json()
        assert [p["keyword"] for p in positions] == ["best boots", "rain jackets"]
        assert positions[0]["domain"] == "shop.example.com"

    def test_no_file(self, client, auth_headers):
        response = client.post("/api/reddit/upload-positions", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "No file uploaded"

    def test_unparseable_file(self, client, auth_headers):
        response = _upload(client, auth_headers, "keyword,rank\nx,1\n")
        assert response.status_code == 400
        assert 'at least "keyword" and "url"' in response.json()["message"]

    def test_too_large(self, client, auth_headers, monkeypatch):
        small = replace(get_settings(), max_upload_bytes=10)
        monkeypatch.setattr("snefuru.web.app.get_settings", lambda: small)

        response = _upload(client, auth_headers)

        assert response.status_code == 413

    def test_requires_login(self, client):
        assert _upload(client, {}).status_code == 401


class TestPositions:

    def test_positions_are_per_user(self, client, auth_headers, other_auth_headers):
        _upload(client, auth_headers)
        assert client.get("/api/reddit/organic-positions", headers=other_auth_headers).json() == []

    def test_get_one(self, client, auth_headers, other_auth_headers):
        _upload(client, auth_headers)
        position_id = _position_ids(client, auth_headers)[0]

        mine = client.get(f"/api/reddit/organic-positions/{position_id}", headers=auth_headers)
        theirs = client.get(f"/api/reddit/organic-positions/{position_id}", headers=other_auth_headers)
        missing = client.get("/api/reddit/organic-positions/9999", headers=auth_headers)
        invalid = client.get("/api/reddit/organic-positions/abc", headers=auth_headers)

        assert mine.json()["keyword"] == "best boots"
        assert theirs.status_code == 403
        assert missing.status_code == 404
        assert invalid.status_code == 400

    def test_bulk_delete(self, client, auth_headers):
        _upload(client, auth_headers)
        ids = _position_ids(client, auth_headers)

        response = client.request("DELETE", "/api/reddit/organic-positions/bulk-delete",
                                  headers=auth_headers, json={"ids": ids})

        assert response.json()["deletedCount"] == 2
        assert _position_ids(client, auth_headers) == []

    def test_bulk_delete_refuses_foreign_records(self, client, auth_headers, other_auth_headers):
        _upload(client, auth_headers)
        ids = _position_ids(client, auth_headers)

        response = client.request("DELETE", "/api/reddit/organic-positions/bulk-delete",
                                  headers=other_auth_headers, json={"ids": ids})

        assert response.status_code == 403
        assert len(_position_ids(client, auth_headers)) == 2

    def test_bulk_delete_empty(self, client, auth_headers):
        response = client.request("DELETE", "/api/reddit/organic-positions/bulk-delete",
                                  headers=auth_headers, json={"ids": []})
        assert response.json()["message"] == "Invalid or empty IDs array"


class TestScrapeUrls:

    def test_not_configured(self, client, auth_headers):
        response = client.post("/api/reddit/scrape-urls", headers=auth_headers, json={"ids": [1]})

        assert response.status_code == 400
        assert response.json()["message"].startswith("ScraperAPI key not configured")

    def test_stores_page_html(self, client, auth_headers, fetcher):
        _upload(client, auth_headers)
        ids = _position_ids(client, auth_headers)

        response = client.post("/api/reddit/scrape-urls", headers=auth_headers, json={"ids": ids})

        assert response.json() == {
            "success": True,
            "message": "Scraping completed: 2 successful, 0 failed",
            "scraped_count": 2,
            "failed_count": 0,
        }
        fetcher.fetch.assert_any_call("https://shop.example.com/boots")
        position = client.get(f"/api/reddit/organic-positions/{ids[0]}", headers=auth_headers).json()
        assert position["raw_page_fetched_1"] == "<html>ranking page</html>"

    def test_failures_are_counted(self, client, auth_headers, other_auth_headers, fetcher):
        _upload(client, auth_headers)
        ids = _position_ids(client, auth_headers)
        fetcher.fetch.side_effect = [PageFetchError("blocked")]

        mine = client.post("/api/reddit/scrape-urls", headers=auth_headers, json={"ids": ids[:1]})
        theirs = client.post("/api/reddit/scrape-urls", headers=other_auth_headers, json={"ids": ids})

        assert mine.json()["failed_count"] == 1
        assert theirs.json()["failed_count"] == 2
        assert theirs.json()["scraped_count"] == 0
