"""Explicit per-request state passed to every pipeline step."""
import asyncio
import contextlib
from dataclasses import dataclass
from typing import Awaitable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.services.moderation import ModerationClassifier
from app.services.photo_repository import PhotoRepository
from app.services.storage import ObjectStorage

T = TypeVar("T")


class OperationCancelled(Exception):
    pass


class CancellationToken:
    """Cooperative cancellation shared between a submission and whoever owns it.

    ``run`` races an awaitable against ``cancel()``; when the token fires first
    the in-flight task is cancelled rather than left to finish in the background.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled()

    async def run(self, awaitable: Awaitable[T]) -> T:
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task.done():
            return task.result()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        raise OperationCancelled()


@dataclass
class PipelineContext:
    profile_id: str
    session_factory: async_sessionmaker[AsyncSession]
    storage: ObjectStorage
    classifier: ModerationClassifier
    settings: Settings
    access_token: str | None = None

    @property
    def photos(self) -> PhotoRepository:
        return PhotoRepository(self.session_factory)
