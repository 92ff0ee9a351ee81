"""
Profile-store collaborators: the single place the pipeline writes profile state.
"""

import asyncio
import logging
from typing import Dict, Optional, Protocol

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from profile_images.db.models import Base, User
from profile_images.errors import PersistFailed

logger = logging.getLogger(__name__)


class ProfileStore(Protocol):
    async def update_profile_image(self, caller_id: str, value: str) -> None:
        """Point the caller's profile image at *value* or raise PersistFailed."""
        ...


class InMemoryProfileStore:
    """Dictionary-backed store for tests and local development."""

    def __init__(self, profiles: Optional[Dict[str, Optional[str]]] = None):
        self.profiles: Dict[str, Optional[str]] = dict(profiles or {})
        self.updates = []

    async def update_profile_image(self, caller_id: str, value: str) -> None:
        if caller_id not in self.profiles:
            raise PersistFailed()
        self.profiles[caller_id] = value
        self.updates.append((caller_id, value))


class SQLAlchemyProfileStore:
    """Writes ``users.profile_image`` through a synchronous SQLAlchemy session.

    Each update runs in a worker thread so the event loop is never blocked.
    """

    def __init__(self, database_url: str, create_tables: bool = False):
        engine_kwargs = {}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
                engine_kwargs["poolclass"] = StaticPool
        self.engine = create_engine(database_url, **engine_kwargs)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        if create_tables:
            Base.metadata.create_all(self.engine)

    def _update(self, caller_id: str, value: str) -> None:
        with self.Session() as session:
            user = session.get(User, caller_id)
            if user is None:
                raise PersistFailed()
            user.profile_image = value
            session.commit()

    async def update_profile_image(self, caller_id: str, value: str) -> None:
        try:
            await asyncio.to_thread(self._update, caller_id, value)
        except SQLAlchemyError as exc:
            logger.error("Profile update failed: %s", exc, extra={"caller_id": caller_id})
            raise PersistFailed() from exc

    def get_profile_image(self, caller_id: str) -> Optional[str]:
        with self.Session() as session:
            user = session.get(User, caller_id)
            return user.profile_image if user is not None else None

    def dispose(self) -> None:
        self.engine.dispose()
