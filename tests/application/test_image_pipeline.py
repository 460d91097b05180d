"""Tests for the generate job, with generation, storage and WordPress faked."""

import base64
from unittest.mock import MagicMock

import pytest

from snefuru.application import GenerationRequest, ImagePipeline, NoValidRowsError
from snefuru.infrastructure.llm import GeneratedImage, ImageGenerationError
from snefuru.infrastructure.storage import StorageError
from snefuru.infrastructure.wordpress import PublishResult, WpCredentials

PNG_B64 = base64.b64encode(b"png-bytes").decode("ascii")


def _row(prompt, file_name):
    return {"actual_prompt_for_image_generating_ai_tool": prompt, "file_name": file_name}


class FakeStorage:
    def __init__(self):
        self.uploads = []

    def upload(self, base64_data, file_name, mime_type="image/png"):
        self.uploads.append((base64_data, file_name, mime_type))
        return f"https://cdn.example.com/{file_name}.png"


@pytest.fixture
def image_service():
    service = MagicMock()
    service.generate.return_value = GeneratedImage(PNG_B64, "image/png")
    return service


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def pipeline(db, image_service, storage):
    return ImagePipeline(db, image_service=image_service, storage_factory=lambda service: storage)


class TestImagePipeline:

    def test_generates_uploads_and_saves_each_row(self, db, pipeline, image_service, storage):
        request = GenerationRequest([_row("a barn", "barn"), _row("a kitchen", "kitchen")],
                                    "openai", "amazon_s3")

        result = pipeline.run(request)

        assert result.count == 2
        assert result.failed_count == 0
        assert db.get_image_batch(result.batch_id).note1 == "Batch with 2 images"
        assert [i.img_url1 for i in db.get_images_by_batch_id(result.batch_id)] == [
            "https://cdn.example.com/barn.png",
            "https://cdn.example.com/kitchen.png",
        ]
        assert [u[1] for u in storage.uploads] == ["barn", "kitchen"]
        image_service.generate.assert_any_call("a barn", "openai")

    def test_no_valid_rows(self, db, pipeline):
        with pytest.raises(NoValidRowsError, match="No valid rows found"):
            pipeline.run(GenerationRequest([{"file_name": "x"}, _row("p", "  ")], "openai", "dropbox"))
        assert db.get_all_image_batches() == []

    def test_invalid_rows_are_counted_and_skipped(self, pipeline):
        result = pipeline.run(GenerationRequest([_row("p", "ok"), {"file_name": 3}], "gemini", "dropbox"))
        assert result.count == 1
        assert result.invalid_count == 1

    def test_failed_row_does_not_stop_batch(self, pipeline, image_service):
        image_service.generate.side_effect = [
            ImageGenerationError("provider down"),
            GeneratedImage(PNG_B64, "image/png"),
        ]

        result = pipeline.run(GenerationRequest([_row("a", "first"), _row("b", "second")],
                                                "openai", "dropbox"))

        assert result.failed_count == 1
        assert [i.img_url1 for i in result.images] == ["https://cdn.example.com/second.png"]

    def test_unavailable_storage_fails_every_row(self, db, image_service):
        def no_storage(service):
            raise StorageError("not configured")

        pipeline = ImagePipeline(db, image_service=image_service, storage_factory=no_storage)
        result = pipeline.run(GenerationRequest([_row("a", "a"), _row("b", "b")], "openai", "dropbox"))

        assert result.count == 0
        assert result.failed_count == 2
        assert db.get_image_batch(result.batch_id) is not None
        image_service.generate.assert_not_called()

    def test_publishes_when_credentials_complete(self, db, image_service, storage):
        publisher = MagicMock()
        publisher.publish.return_value = PublishResult(True, "ok", media_id=5)
        factory = MagicMock(return_value=publisher)
        pipeline = ImagePipeline(db, image_service=image_service,
                                 storage_factory=lambda s: storage, publisher_factory=factory)
        credentials = WpCredentials(url="https://blog.example.com", username="admin", password="pw")

        result = pipeline.run(GenerationRequest([_row("a", "barn")], "openai", "dropbox", credentials))

        assert result.published_count == 1
        factory.assert_called_once_with(credentials)
        publisher.publish.assert_called_once_with(
            b"png-bytes", "barn.png", "image/png", "https://cdn.example.com/barn.png"
        )

    def test_published_media_name_is_sanitised(self, db, image_service, storage):
        publisher = MagicMock()
        publisher.publish.return_value = PublishResult(True, "ok", media_id=5)
        pipeline = ImagePipeline(db, image_service=image_service, storage_factory=lambda s: storage,
                                 publisher_factory=lambda c: publisher)
        credentials = WpCredentials(url="https://blog.example.com", username="admin", password="pw")

        pipeline.run(GenerationRequest([_row("a", 'kitchen "hero"')], "openai", "dropbox", credentials))

        media_name = publisher.publish.call_args.args[1]
        assert media_name == "kitchen__hero_.png"

    def test_publish_failure_still_saves_image(self, db, image_service, storage):
        publisher = MagicMock()
        publisher.publish.return_value = PublishResult(False, "WordPress request failed")
        pipeline = ImagePipeline(db, image_service=image_service, storage_factory=lambda s: storage,
                                 publisher_factory=lambda c: publisher)
        credentials = WpCredentials(url="https://blog.example.com", username="admin", password="pw")

        result = pipeline.run(GenerationRequest([_row("a", "barn")], "openai", "dropbox", credentials))

        assert result.count == 1
        assert result.published_count == 0

    def test_incomplete_credentials_skip_publishing(self, db, image_service, storage):
        factory = MagicMock()
        pipeline = ImagePipeline(db, image_service=image_service, storage_factory=lambda s: storage,
                                 publisher_factory=factory)

        pipeline.run(GenerationRequest([_row("a", "barn")], "openai", "dropbox",
                                       WpCredentials(url="https://blog.example.com")))

        factory.assert_not_called()
