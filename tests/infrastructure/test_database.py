"""Tests for the SQLite repository."""

import pytest


class TestUsers:

    def test_create_and_fetch(self, db):
        user_id = db.create_user("ada@example.com", "ada", "hash:salt", "Ada", "Lovelace")

        user = db.get_user_by_id(user_id)
        assert user.email == "ada@example.com"
        assert user.last_name == "Lovelace"
        assert user.user_role == "user"
        assert user.is_active == 1
        assert db.get_user_by_email("ada@example.com").id == user_id
        assert db.get_user_by_username("ada").id == user_id

    def test_duplicates_return_none(self, db):
        db.create_user("ada@example.com", "ada", "h:s")
        assert db.create_user("ada@example.com", "other", "h:s") is None
        assert db.create_user("other@example.com", "ada", "h:s") is None

    def test_public_view_hides_password_hash(self, db):
        user = db.get_user_by_id(db.create_user("ada@example.com", "ada", "h:s"))
        public = user.to_public()
        assert "password_hash" not in public
        assert public["username"] == "ada"

    def test_update_user(self, db):
        user_id = db.create_user("ada@example.com", "ada", "h:s")
        updated = db.update_user(user_id, first_name="Ada", profile_image="https://img/ada.png")
        assert updated.first_name == "Ada"
        assert updated.profile_image == "https://img/ada.png"

    def test_update_user_rejects_unknown_columns(self, db):
        user_id = db.create_user("ada@example.com", "ada", "h:s")
        with pytest.raises(ValueError, match="user_role"):
            db.update_user(user_id, user_role="admin")

    def test_update_last_login(self, db):
        user_id = db.create_user("ada@example.com", "ada", "h:s")
        assert db.get_user_by_id(user_id).last_login is None
        db.update_last_login(user_id)
        assert db.get_user_by_id(user_id).last_login is not None

    def test_missing_user(self, db):
        assert db.get_user_by_id(999) is None
        assert db.get_user_by_email("nobody@example.com") is None


class TestImages:

    def test_batch_and_images(self, db):
        batch_id = db.create_image_batch("Batch with 2 images")
        first = db.create_image("https://cdn/a.png", batch_id)
        db.create_image("https://cdn/b.png", batch_id)

        assert db.get_image_batch(batch_id).note1 == "Batch with 2 images"
        assert first.rel_img_batch_id == batch_id
        assert first.created_at
        assert [i.img_url1 for i in db.get_images_by_batch_id(batch_id)] == [
            "https://cdn/a.png", "https://cdn/b.png",
        ]

    def test_recent_batches_newest_first(self, db):
        ids = [db.create_image_batch(f"batch {n}") for n in range(7)]

        recent = db.get_recent_image_batches(limit=5)

        assert [b.id for b in recent] == list(reversed(ids))[:5]
        assert len(db.get_all_image_batches()) == 7

    def test_images_of_unknown_batch(self, db):
        assert db.get_images_by_batch_id(404) == []


class TestDomains:

    def test_bulk_create_and_list(self, db):
        created = db.bulk_create_domains(1, ["a.com", "b.com"])
        db.bulk_create_domains(2, ["a.com"])

        assert [d.domain_base for d in created] == ["a.com", "b.com"]
        assert [d.domain_base for d in db.get_user_domains(1)] == ["a.com", "b.com"]
        assert len(db.get_user_domains(2)) == 1

    def test_delete(self, db):
        first, second, third = db.bulk_create_domains(1, ["a.com", "b.com", "c.com"])

        db.delete_domain(first.id)
        db.bulk_delete_domains([second.id, third.id])

        assert db.get_user_domains(1) == []
        assert db.get_domain(first.id) is None


class TestOrganicPositions:

    def test_bulk_create_ignores_unknown_keys(self, db):
        count = db.bulk_create_organic_positions([
            {"user_id": 1, "keyword": "boots", "url": "https://a.com", "position": 3, "bogus": "x"},
            {"user_id": 1, "keyword": "shoes", "url": "https://b.com"},
            {"user_id": 2, "keyword": "hats", "url": "https://c.com"},
        ])

        assert count == 3
        positions = db.get_organic_positions_by_user_id(1)
        assert [p.keyword for p in positions] == ["boots", "shoes"]
        assert positions[0].position == 3
        assert positions[1].position is None

    def test_update_and_delete(self, db):
        db.bulk_create_organic_positions([{"user_id": 1, "keyword": "k", "url": "https://a.com"}])
        position = db.get_organic_positions_by_user_id(1)[0]

        db.update_organic_position(position.id, raw_page_fetched_1="<html></html>")
        assert db.get_organic_position(position.id).raw_page_fetched_1 == "<html></html>"

        db.delete_organic_positions([position.id])
        assert db.get_organic_position(position.id) is None

    def test_update_rejects_unknown_columns(self, db):
        with pytest.raises(ValueError):
            db.update_organic_position(1, id=5)
