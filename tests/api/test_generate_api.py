"""Tests for spreadsheet parsing, the generate job endpoint and batch listings."""

from unittest.mock import MagicMock

import pytest

from snefuru.application import ImagePipeline
from snefuru.web.app import get_db, get_pipeline


class FakeStorage:
    def upload(self, base64_data, file_name, mime_type="image/png"):
        return f"https://cdn.example.com/{file_name}"


@pytest.fixture
def fake_pipeline(app, client):
    """Real pipeline with placeholder models and in-memory storage."""
    app.dependency_overrides[get_pipeline] = lambda: ImagePipeline(
        get_db(), storage_factory=lambda service: FakeStorage()
    )


def _payload(rows, model="midjourney", storage="dropbox", **extra):
    payload = {"spreadsheetData": rows, "aiModel": model, "storageService": storage}
    payload.update(extra)
    return payload


def _row(prompt, file_name):
    return {"actual_prompt_for_image_generating_ai_tool": prompt, "file_name": file_name}


class TestSpreadsheetParse:

    def test_extracts_rows(self, client):
        data = "Image Prompt\tFile Name\tNotes\na barn\tbarn\tx\n\nno file\t\t\n"

        response = client.post("/api/spreadsheet/parse", json={"data": data})

        body = response.json()
        assert body["headers"] == ["Image Prompt", "File Name", "Notes"]
        assert body["rows"] == [_row("a barn", "barn")]
        assert body["missingColumns"] == []

    def test_reports_missing_columns(self, client):
        response = client.post("/api/spreadsheet/parse", json={"data": "title\tfile\nx\ty"})

        body = response.json()
        assert body["rows"] == []
        assert body["missingColumns"] == ["actual_prompt_for_image_generating_ai_tool"]

    def test_empty_input(self, client):
        body = client.post("/api/spreadsheet/parse", json={"data": ""}).json()
        assert body["headers"] == []
        assert body["missingColumns"] == []


class TestGenerate:

    def test_runs_batch(self, client, fake_pipeline):
        response = client.post("/api/generate", json=_payload([_row("a barn", "barn"),
                                                                 _row("a shed", "shed")]))

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Image generation completed"
        assert body["count"] == 2
        assert body["failed"] == 0
        assert body["publishedToWordPress"] == 0
        assert [i["img_url1"] for i in body["images"]] == [
            "https://cdn.example.com/barn", "https://cdn.example.com/shed",
        ]

        batch_images = client.get(f"/api/batches/{body['batchId']}/images").json()
        assert len(batch_images) == 2
        assert client.get("/api/batches").json()[0]["note1"] == "Batch with 2 images"

    def test_no_valid_rows(self, client, fake_pipeline):
        response = client.post("/api/generate", json=_payload([{"file_name": "barn"}]))

        assert response.status_code == 400
        assert response.json()["message"].startswith("No valid rows found in spreadsheet data")

    def test_unknown_model_is_a_validation_error(self, client):
        response = client.post("/api/generate", json=_payload([_row("a", "b")], model="dalle"))

        assert response.status_code == 400
        assert response.json()["errors"][0]["path"] == "aiModel"

    def test_invalid_wordpress_url(self, client):
        response = client.post("/api/generate", json=_payload(
            [_row("a", "b")], wpCredentials={"url": "not a url"}
        ))

        assert response.status_code == 400
        assert response.json()["errors"][0]["message"] == "Invalid url"

    def test_unexpected_failure_is_500(self, app, client):
        pipeline = MagicMock()
        pipeline.run.side_effect = RuntimeError("database gone")
        app.dependency_overrides[get_pipeline] = lambda: pipeline

        response = client.post("/api/generate", json=_payload([_row("a", "b")]))

        assert response.status_code == 500
        assert response.json() == {"message": "Error processing request"}

    def test_storage_not_configured_fails_rows(self, client):
        response = client.post("/api/generate", json=_payload([_row("a barn", "barn")]))

        body = response.json()
        assert response.status_code == 200
        assert body["count"] == 0
        assert body["failed"] == 1


class TestBatches:

    def test_invalid_batch_id(self, client):
        response = client.get("/api/batches/abc/images")
        assert response.status_code == 400
        assert response.json() == {"message": "Invalid batch ID"}

    def test_empty_listing(self, client):
        assert client.get("/api/batches").json() == []
