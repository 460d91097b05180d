from .image_service import (
    GeneratedImage,
    ImageGenerationError,
    ImageGenerationService,
    ImageModel,
)
from .chat_service import ChatReply, ChatService, ChatServiceError, MODEL_CATALOG

__all__ = [
    "GeneratedImage",
    "ImageGenerationError",
    "ImageGenerationService",
    "ImageModel",
    "ChatReply",
    "ChatService",
    "ChatServiceError",
    "MODEL_CATALOG",
]
