from .storage_provider import (
    AmazonS3Provider,
    DropboxProvider,
    GoogleDriveProvider,
    StorageError,
    StorageProvider,
    StorageService,
    decode_image_data,
    get_storage_provider,
    safe_file_name,
)

__all__ = [
    "AmazonS3Provider",
    "DropboxProvider",
    "GoogleDriveProvider",
    "StorageError",
    "StorageProvider",
    "StorageService",
    "decode_image_data",
    "get_storage_provider",
    "safe_file_name",
]
