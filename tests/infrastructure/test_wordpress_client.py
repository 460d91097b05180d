"""Tests for WordPress publishing over the REST API."""

from unittest.mock import MagicMock

import requests

from snefuru.infrastructure.wordpress import WordPressClient, WpCredentials


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return response


def _credentials(**overrides) -> WpCredentials:
    values = {"url": "https://blog.example.com/", "username": "admin", "password": "pw"}
    values.update(overrides)
    return WpCredentials(**values)


class TestWpCredentials:

    def test_complete_needs_url_username_and_password(self):
        assert _credentials().is_complete
        assert not _credentials(password="").is_complete
        assert not WpCredentials().is_complete

    def test_api_base_strips_trailing_slash(self):
        assert _credentials().api_base == "https://blog.example.com/wp-json/wp/v2"


class TestWordPressClient:

    def test_missing_credentials(self):
        session = MagicMock()
        result = WordPressClient(WpCredentials(url="https://x.com"), session=session).publish(
            b"img", "a.png", "image/png"
        )
        assert not result.success
        assert result.message == "Missing WordPress credentials"
        session.post.assert_not_called()

    def test_uploads_media_only_without_post_id(self):
        session = MagicMock()
        session.post.return_value = _response(payload={"id": 55})

        result = WordPressClient(_credentials(), session=session).publish(b"img", "a.png", "image/png")

        assert result.success
        assert result.media_id == 55
        session.post.assert_called_once()
        call = session.post.call_args
        assert call.args[0] == "https://blog.example.com/wp-json/wp/v2/media"
        assert call.kwargs["headers"]["Content-Disposition"] == 'attachment; filename="a.png"'
        assert call.kwargs["data"] == b"img"

    def test_application_password_preferred_for_auth(self):
        session = MagicMock()
        WordPressClient(_credentials(application_password="app pw"), session=session)
        assert session.auth == ("admin", "app pw")

    def test_account_password_used_without_application_password(self):
        session = MagicMock()
        WordPressClient(_credentials(), session=session)
        assert session.auth == ("admin", "pw")

    def test_sets_featured_media_and_mapping_meta(self):
        session = MagicMock()
        session.post.side_effect = [_response(payload={"id": 9}), _response(payload={"id": 42})]
        credentials = _credentials(post_id="42", mapping_key="hero_image")

        result = WordPressClient(credentials, session=session).publish(
            b"img", "a.png", "image/png", image_url="https://cdn/a.png"
        )

        assert result.success
        post_call = session.post.call_args_list[1]
        assert post_call.args[0] == "https://blog.example.com/wp-json/wp/v2/posts/42"
        assert post_call.kwargs["json"] == {
            "featured_media": 9,
            "meta": {"hero_image": "https://cdn/a.png"},
        }

    def test_http_failure_is_reported_not_raised(self):
        session = MagicMock()
        session.post.return_value = _response(status_code=403)

        result = WordPressClient(_credentials(), session=session).publish(b"img", "a.png", "image/png")

        assert not result.success
        assert "WordPress request failed" in result.message

    def test_non_numeric_post_id_is_reported(self):
        session = MagicMock()
        session.post.return_value = _response(payload={"id": 9})

        result = WordPressClient(_credentials(post_id="abc"), session=session).publish(
            b"img", "a.png", "image/png"
        )

        assert not result.success
