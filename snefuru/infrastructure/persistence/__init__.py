from .database import (
    Database,
    Domain,
    Image,
    ImageBatch,
    OrganicPosition,
    User,
    init_database,
)

__all__ = [
    "Database",
    "Domain",
    "Image",
    "ImageBatch",
    "OrganicPosition",
    "User",
    "init_database",
]
