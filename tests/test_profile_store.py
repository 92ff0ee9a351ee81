"""Tests for the SQLAlchemy profile store."""

import asyncio

import pytest

from profile_images.db.models import DEFAULT_PROFILE_IMAGE, User
from profile_images.errors import PersistFailed
from profile_images.profile_store import SQLAlchemyProfileStore


@pytest.fixture
def db_store():
    store = SQLAlchemyProfileStore("sqlite://", create_tables=True)
    with store.Session() as session:
        session.add(User(id="42", username="alice"))
        session.commit()
    yield store
    store.dispose()


class TestSQLAlchemyProfileStore:
    def test_new_user_has_default_image(self, db_store):
        assert db_store.get_profile_image("42") == DEFAULT_PROFILE_IMAGE

    def test_update_profile_image(self, db_store):
        asyncio.run(db_store.update_profile_image("42", "/assets/public/images/uploads/42.png"))
        assert db_store.get_profile_image("42") == "/assets/public/images/uploads/42.png"

    def test_unknown_user(self, db_store):
        with pytest.raises(PersistFailed):
            asyncio.run(db_store.update_profile_image("nobody", "https://imgur.com/abc123"))

    def test_database_error_wrapped(self):
        store = SQLAlchemyProfileStore("sqlite://")
        with pytest.raises(PersistFailed):
            asyncio.run(store.update_profile_image("42", "https://imgur.com/abc123"))
        store.dispose()
