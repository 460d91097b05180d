# Application Layer
# =================
# Use cases that orchestrate the infrastructure adapters.
# - image_pipeline: spreadsheet rows -> generated, stored, published images

from .image_pipeline import (
    GenerationRequest,
    GenerationResult,
    ImagePipeline,
    NoValidRowsError,
)

__all__ = ["GenerationRequest", "GenerationResult", "ImagePipeline", "NoValidRowsError"]
