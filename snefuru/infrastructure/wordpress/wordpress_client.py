"""
WordPress Client - Publish Generated Images
============================================

Uploads an image to a WordPress media library over the REST API and,
when a post id is given, attaches it to that post.

Authentication uses HTTP Basic with an application password
(Users -> Profile -> Application Passwords), falling back to the
account password for sites with a basic-auth plugin.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

logger = logging.getLogger(__name__)


@dataclass
class WpCredentials:
    """WordPress site connection details entered on the dashboard."""
    url: str = ""
    username: str = ""
    password: str = ""
    post_id: str = ""
    mapping_key: str = ""
    application_password: str = ""

    @property
    def is_complete(self) -> bool:
        """Publishing only happens when url, username and password are set."""
        return bool(self.url and self.username and self.password)

    @property
    def api_base(self) -> str:
        return self.url.rstrip("/") + "/wp-json/wp/v2"


@dataclass
class PublishResult:
    success: bool
    message: str
    media_id: Optional[int] = None


class WordPressClient:
    """
    USAGE:
        client = WordPressClient(credentials)
        result = client.publish(image_bytes, "hero.png", "image/png", image_url)
        if not result.success:
            print(result.message)
    """

    def __init__(self, credentials: WpCredentials, timeout: int = 30,
                 session: Optional[requests.Session] = None):
        self._credentials = credentials
        self._timeout = timeout
        self._session = session or requests.Session()
        secret = credentials.application_password or credentials.password
        self._session.auth = (credentials.username, secret)

    def publish(self, image_bytes: bytes, file_name: str, mime_type: str,
                image_url: str = "") -> PublishResult:
        """
        Upload the image and optionally attach it to a post.

        Never raises: failures come back as PublishResult(success=False).
        """
        creds = self._credentials
        logger.info(f"Publishing image {file_name} to WordPress site {creds.url}")

        if not creds.is_complete:
            return PublishResult(False, "Missing WordPress credentials")

        try:
            media_id = self._upload_media(image_bytes, file_name, mime_type)

            if creds.post_id:
                self._attach_to_post(int(creds.post_id), media_id, image_url)

            return PublishResult(
                True,
                f"Image successfully published to WordPress site {creds.url}",
                media_id,
            )
        except requests.RequestException as e:
            logger.error(f"Error publishing to WordPress: {e}")
            return PublishResult(False, f"WordPress request failed: {e}")
        except ValueError as e:
            logger.error(f"Error publishing to WordPress: {e}")
            return PublishResult(False, str(e))

    def _upload_media(self, image_bytes: bytes, file_name: str, mime_type: str) -> int:
        response = self._session.post(
            f"{self._credentials.api_base}/media",
            headers={
                "Content-Disposition": f'attachment; filename="{file_name}"',
                "Content-Type": mime_type,
            },
            data=image_bytes,
            timeout=self._timeout,
        )
        response.raise_for_status()

        media_id = response.json().get("id")
        if not media_id:
            raise ValueError("WordPress did not return a media id")
        return int(media_id)

    def _attach_to_post(self, post_id: int, media_id: int, image_url: str):
        payload = {"featured_media": media_id}

        mapping_key = self._credentials.mapping_key
        if mapping_key:
            # Custom field must be registered with show_in_rest on the site
            logger.info(f"Setting custom field {mapping_key} for post {post_id} with media {media_id}")
            payload["meta"] = {mapping_key: image_url}

        response = self._session.post(
            f"{self._credentials.api_base}/posts/{post_id}",
            json=payload,
            timeout=self._timeout,
        )
        response.raise_for_status()
