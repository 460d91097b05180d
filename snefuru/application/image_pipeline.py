"""
Image Pipeline - The Generate Job
=================================

One run turns a list of spreadsheet rows into stored images:

    generate (AI model) -> upload (cloud storage) -> publish (WordPress) -> save

A failing row never stops the batch: it is logged, counted and skipped.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..infrastructure.importer import SpreadsheetRow, validate_rows
from ..infrastructure.llm import ImageGenerationService
from ..infrastructure.persistence import Database, Image
from ..infrastructure.storage import StorageError, StorageProvider, get_storage_provider, safe_file_name
from ..infrastructure.wordpress import WordPressClient, WpCredentials

logger = logging.getLogger(__name__)

NO_VALID_ROWS_MESSAGE = (
    "No valid rows found in spreadsheet data. Each row must contain "
    "'actual_prompt_for_image_generating_ai_tool' and 'file_name' fields."
)


class NoValidRowsError(ValueError):
    """Raised when none of the submitted rows can be processed."""

    def __init__(self, message: str = NO_VALID_ROWS_MESSAGE):
        super().__init__(message)


@dataclass
class GenerationRequest:
    rows: List[Dict]
    ai_model: str
    storage_service: str
    wp_credentials: WpCredentials = field(default_factory=WpCredentials)


@dataclass
class GenerationResult:
    batch_id: int
    images: List[Image] = field(default_factory=list)
    published_count: int = 0
    failed_count: int = 0
    invalid_count: int = 0

    @property
    def count(self) -> int:
        return len(self.images)


class ImagePipeline:
    """
    Orchestrates one generation batch.

    Storage and WordPress clients are built per run through factories, so
    tests (and callers with their own credentials) can swap them.

    USAGE:
        pipeline = ImagePipeline(db)
        result = pipeline.run(GenerationRequest(rows, "openai", "amazon_s3"))
        print(f"{result.count} images in batch {result.batch_id}")
    """

    def __init__(
        self,
        db: Database,
        image_service: Optional[ImageGenerationService] = None,
        storage_factory: Callable[[str], StorageProvider] = get_storage_provider,
        publisher_factory: Callable[[WpCredentials], WordPressClient] = WordPressClient,
    ):
        self.db = db
        self.image_service = image_service or ImageGenerationService()
        self.storage_factory = storage_factory
        self.publisher_factory = publisher_factory

    def run(self, request: GenerationRequest) -> GenerationResult:
        rows, invalid_count = validate_rows(request.rows)
        if invalid_count:
            logger.warning(f"Ignoring {invalid_count} invalid rows")
        if not rows:
            raise NoValidRowsError()

        # Unconfigured storage fails every row rather than the whole request
        storage = None
        try:
            storage = self.storage_factory(request.storage_service)
        except StorageError as e:
            logger.error(f"Storage unavailable: {e}")

        publisher = None
        if request.wp_credentials.is_complete:
            publisher = self.publisher_factory(request.wp_credentials)

        batch_id = self.db.create_image_batch(f"Batch with {len(rows)} images")
        result = GenerationResult(batch_id=batch_id, invalid_count=invalid_count)
        logger.info(f"Started batch {batch_id}: {len(rows)} rows, model={request.ai_model}, "
                    f"storage={request.storage_service}")

        for index, row in enumerate(rows, start=1):
            try:
                image, published = self._process_row(row, request.ai_model, storage, publisher, batch_id)
                result.images.append(image)
                if published:
                    result.published_count += 1
            except Exception as e:
                logger.exception(f"Row {index} ({row.file_name}) failed: {e}")
                result.failed_count += 1

        logger.info(f"Finished batch {batch_id}: {result.count} saved, "
                    f"{result.published_count} published, {result.failed_count} failed")
        return result

    def _process_row(self, row: SpreadsheetRow, ai_model: str, storage: Optional[StorageProvider],
                     publisher: Optional[WordPressClient], batch_id: int):
        if storage is None:
            raise StorageError(f"Storage service is not available for {row.file_name}")

        generated = self.image_service.generate(row.prompt, ai_model)
        image_url = storage.upload(generated.base64_data, row.file_name, generated.mime_type)

        published = False
        if publisher is not None:
            # WordPress only accepts media names with an allowed extension
            media_name = safe_file_name(row.file_name, generated.mime_type)
            outcome = publisher.publish(generated.to_bytes(), media_name,
                                        generated.mime_type, image_url)
            if outcome.success:
                published = True
            else:
                logger.warning(f"WordPress publish failed for {row.file_name}: {outcome.message}")

        return self.db.create_image(image_url, batch_id), published
