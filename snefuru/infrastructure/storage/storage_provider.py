"""
Storage Provider - Abstraction Layer for Cloud Image Storage
=============================================================

Provides a unified interface for uploading generated images.
Supports Google Drive, Dropbox and Amazon S3.

USAGE:
    provider = get_storage_provider("dropbox")
    url = provider.upload(base64_data, "kitchen-hero", "image/png")
"""

import re
import json
import base64
import binascii
import logging
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import PurePosixPath
from typing import Optional

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from ..config import get_settings
from ..config.settings import Settings

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class StorageService(Enum):
    """Storage backends selectable on the dashboard."""
    GOOGLE_DRIVE = "google_drive"
    DROPBOX = "dropbox"
    AMAZON_S3 = "amazon_s3"


class StorageError(Exception):
    """Raised when an image cannot be stored."""
    pass


def decode_image_data(base64_data: str) -> bytes:
    """Strictly decode base64 image data."""
    if not isinstance(base64_data, str) or not base64_data:
        raise StorageError("The image data is not in a valid format")
    try:
        return base64.b64decode(base64_data, validate=True)
    except (binascii.Error, ValueError):
        raise StorageError("The image data is not in a valid base64 format")


def safe_file_name(file_name: str, mime_type: str) -> str:
    """
    URL/path safe file name with an extension matching the mime type.

    "Kitchen hero!" + image/png -> "Kitchen_hero_.png"
    """
    cleaned = _UNSAFE_CHARS.sub("_", (file_name or "").strip()) or "image"
    extension = MIME_EXTENSIONS.get(mime_type, "")
    if extension and PurePosixPath(cleaned).suffix.lower() != extension:
        cleaned += extension
    return cleaned


class StorageProvider(ABC):
    """
    Abstract base class for cloud storage providers.
    Implement this interface to add new storage backends.
    """

    name: str = ""

    def upload(self, base64_data: str, file_name: str, mime_type: str = "image/png") -> str:
        """Upload an image and return a URL that shows it."""
        content = decode_image_data(base64_data)
        key = safe_file_name(file_name, mime_type)
        logger.info(f"Uploading image {key} to {self.name}")
        try:
            return self._upload_bytes(content, key, mime_type)
        except StorageError:
            raise
        except (requests.RequestException, BotoCoreError, ClientError) as e:
            logger.error(f"Error uploading to {self.name}: {e}")
            raise StorageError(f"Failed to upload to {self.name}: {e}") from e

    @abstractmethod
    def _upload_bytes(self, content: bytes, file_name: str, mime_type: str) -> str:
        """Store the bytes and return the public URL."""
        ...


class AmazonS3Provider(StorageProvider):
    """Amazon S3 via boto3 (credentials from the standard AWS chain)."""

    name = "amazon_s3"

    def __init__(self, bucket: str, region: str = "us-east-1", prefix: str = "", client=None):
        self._bucket = bucket
        self._prefix = prefix.strip("/")
        self._s3_client = client or boto3.client("s3", region_name=region)

    def _upload_bytes(self, content: bytes, file_name: str, mime_type: str) -> str:
        key = f"{self._prefix}/{file_name}" if self._prefix else file_name
        self._s3_client.put_object(
            Bucket=self._bucket,
            Key=key,
            Body=content,
            ContentType=mime_type,
        )
        return f"https://{self._bucket}.s3.amazonaws.com/{key}"


class DropboxProvider(StorageProvider):
    """Dropbox HTTP API: upload then create (or reuse) a shared link."""

    name = "dropbox"

    UPLOAD_URL = "https://content.dropboxapi.com/2/files/upload"
    SHARE_URL = "https://api.dropboxapi.com/2/sharing/create_shared_link_with_settings"

    def __init__(self, access_token: str, folder: str = "/snefuru",
                 timeout: int = 60, session: Optional[requests.Session] = None):
        self._access_token = access_token
        self._folder = "/" + folder.strip("/") if folder.strip("/") else ""
        self._timeout = timeout
        self._session = session or requests.Session()

    def _upload_bytes(self, content: bytes, file_name: str, mime_type: str) -> str:
        api_arg = {
            "path": f"{self._folder}/{file_name}",
            "mode": "add",
            "autorename": True,
            "mute": True,
        }
        response = self._session.post(
            self.UPLOAD_URL,
            headers={
                "Authorization": f"Bearer {self._access_token}",
                "Dropbox-API-Arg": json.dumps(api_arg),
                "Content-Type": "application/octet-stream",
            },
            data=content,
            timeout=self._timeout,
        )
        response.raise_for_status()
        path = response.json().get("path_display") or api_arg["path"]

        return self._shared_link(path)

    def _shared_link(self, path: str) -> str:
        response = self._session.post(
            self.SHARE_URL,
            headers={
                "Authorization": f"Bearer {self._access_token}",
                "Content-Type": "application/json",
            },
            json={"path": path},
            timeout=self._timeout,
        )

        if response.status_code == 409:
            # Link already exists for this path
            error = response.json().get("error", {})
            existing = error.get("shared_link_already_exists", {}).get("metadata", {})
            if existing.get("url"):
                return existing["url"]

        response.raise_for_status()
        url = response.json().get("url")
        if not url:
            raise StorageError("Dropbox did not return a shared link")
        return url


class GoogleDriveProvider(StorageProvider):
    """Google Drive REST API with an offline refresh token."""

    name = "google_drive"

    TOKEN_URL = "https://oauth2.googleapis.com/token"
    UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
    FILES_URL = "https://www.googleapis.com/drive/v3/files"

    def __init__(self, client_id: str, client_secret: str, refresh_token: str,
                 folder_id: str = "", timeout: int = 60,
                 session: Optional[requests.Session] = None):
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._folder_id = folder_id
        self._timeout = timeout
        self._session = session or requests.Session()

    def _access_token(self) -> str:
        response = self._session.post(
            self.TOKEN_URL,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "refresh_token": self._refresh_token,
                "grant_type": "refresh_token",
            },
            timeout=self._timeout,
        )
        response.raise_for_status()
        token = response.json().get("access_token")
        if not token:
            raise StorageError("Google did not return an access token")
        return token

    def _upload_bytes(self, content: bytes, file_name: str, mime_type: str) -> str:
        token = self._access_token()

        response = self._session.post(
            self.UPLOAD_URL,
            params={"uploadType": "media"},
            headers={"Authorization": f"Bearer {token}", "Content-Type": mime_type},
            data=content,
            timeout=self._timeout,
        )
        response.raise_for_status()
        file_id = response.json().get("id")
        if not file_id:
            raise StorageError("Google Drive did not return a file id")

        # Media uploads are untitled and land in the root folder
        params = {"addParents": self._folder_id} if self._folder_id else {}
        response = self._session.patch(
            f"{self.FILES_URL}/{file_id}",
            params=params,
            headers={"Authorization": f"Bearer {token}"},
            json={"name": file_name},
            timeout=self._timeout,
        )
        response.raise_for_status()

        return f"https://drive.google.com/uc?export=view&id={file_id}"


def get_storage_provider(service: str, settings: Optional[Settings] = None) -> StorageProvider:
    """
    Build the provider for a storage service name.

    Raises:
        StorageError: unsupported service or missing credentials.
    """
    settings = settings or get_settings()
    storage = settings.storage

    try:
        selected = StorageService(service)
    except ValueError:
        raise StorageError(f"Unsupported storage service: {service}")

    if selected is StorageService.AMAZON_S3:
        if not storage.s3_bucket:
            raise StorageError("Amazon S3 is not configured (AWS_S3_BUCKET missing)")
        return AmazonS3Provider(storage.s3_bucket, storage.s3_region, storage.s3_prefix)

    if selected is StorageService.DROPBOX:
        if not storage.dropbox_access_token:
            raise StorageError("Dropbox is not configured (DROPBOX_ACCESS_TOKEN missing)")
        return DropboxProvider(
            storage.dropbox_access_token, storage.dropbox_folder, storage.timeout_seconds
        )

    if not (storage.gdrive_client_id and storage.gdrive_client_secret
            and storage.gdrive_refresh_token):
        raise StorageError("Google Drive is not configured (GOOGLE_DRIVE_* credentials missing)")
    return GoogleDriveProvider(
        storage.gdrive_client_id,
        storage.gdrive_client_secret,
        storage.gdrive_refresh_token,
        storage.gdrive_folder_id,
        storage.timeout_seconds,
    )
