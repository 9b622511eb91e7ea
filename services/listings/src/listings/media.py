"""
Media set reconciliation for one edit session.

Three buckets are tracked:

- ``existing``: remote locators as last returned by the server (read-only)
- ``staged``: local binaries added this session, in the order added
- ``removed``: remote locators the operator marked for deletion

On save the update endpoint expects the complete file list, so kept remote
media has to be dereferenced back to bytes and resubmitted ahead of the new
files. A session cache primed at edit start can supply those bytes without
another round trip.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from common.cache import CacheUnavailableError, SessionMediaCache
from common.logging import get_logger

from .errors import MediaCacheUnavailable, SessionStateError
from .models import BinaryPayload, LocalMedia, RemoteLocator, filename_from_locator, guess_media_type
from .stores.base import MediaByteStore

logger = get_logger(__name__)


class MediaSetReconciler:
    """Track existing, staged and removed media and build the upload payload."""

    def __init__(
        self,
        existing: Sequence[RemoteLocator],
        byte_store: MediaByteStore,
        cache: Optional[SessionMediaCache] = None,
    ) -> None:
        self._existing: Tuple[RemoteLocator, ...] = tuple(existing)
        self._staged: List[LocalMedia] = []
        self._removed: Set[RemoteLocator] = set()
        self._byte_store = byte_store
        self._cache = cache
        self._epoch = 0

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------
    @property
    def existing(self) -> Tuple[RemoteLocator, ...]:
        return self._existing

    @property
    def staged(self) -> List[LocalMedia]:
        return list(self._staged)

    @property
    def removed(self) -> frozenset:
        return frozenset(self._removed)

    @property
    def cache(self) -> Optional[SessionMediaCache]:
        return self._cache

    def is_removed(self, reference: RemoteLocator) -> bool:
        return reference in self._removed

    def kept(self) -> List[RemoteLocator]:
        """Existing locators that will be resubmitted, in server order."""

        return [locator for locator in self._existing if locator not in self._removed]

    @property
    def is_dirty(self) -> bool:
        return bool(self._staged or self._removed)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def stage_new(self, files: Iterable[LocalMedia]) -> None:
        self._staged.extend(files)

    def unstage(self, index: int) -> LocalMedia:
        if not 0 <= index < len(self._staged):
            raise IndexError(f"No staged media at index {index} (have {len(self._staged)})")
        return self._staged.pop(index)

    def mark_removed(self, reference: RemoteLocator) -> None:
        if reference in self._existing:
            self._removed.add(reference)

    def unmark_removed(self, reference: RemoteLocator) -> None:
        self._removed.discard(reference)

    def toggle_removed(self, reference: RemoteLocator) -> bool:
        """Flip the removal mark; returns whether the item is now removed."""

        if reference in self._removed:
            self.unmark_removed(reference)
            return False
        self.mark_removed(reference)
        return reference in self._removed

    def discard(self) -> None:
        """Drop this session's local edits. ``existing`` is server truth and stays."""

        self._staged.clear()
        self._removed.clear()

    def close(self) -> None:
        """Discard and make any in-flight payload build fail instead of completing."""

        self._epoch += 1
        self.discard()

    # ------------------------------------------------------------------
    # Payload
    # ------------------------------------------------------------------
    async def build_submission_payload(self) -> List[BinaryPayload]:
        """Kept remote media first (server order), then staged media (append order).

        A single remote item that cannot be fetched is logged and left out.
        An unreachable cache backend fails the whole build.
        """

        epoch = self._epoch
        survivors = self.kept()
        staged = list(self._staged)

        results = await asyncio.gather(
            *(self._resolve(locator) for locator in survivors),
            return_exceptions=True,
        )

        if epoch != self._epoch:
            raise SessionStateError("Edit session closed while the media payload was being built")

        payload: List[BinaryPayload] = []
        unavailable: Optional[BaseException] = None
        for locator, result in zip(survivors, results):
            if isinstance(result, MediaCacheUnavailable):
                unavailable = unavailable or result
            elif isinstance(result, asyncio.CancelledError):
                raise result
            elif isinstance(result, BaseException):
                logger.warning("media_item_dropped", locator=locator, error=str(result))
            else:
                payload.append(result)

        if unavailable is not None:
            raise unavailable

        payload.extend(staged)
        logger.info(
            "media_payload_built",
            kept=len(payload) - len(staged),
            dropped=len(survivors) - (len(payload) - len(staged)),
            staged=len(staged),
        )
        return payload

    async def _resolve(self, locator: RemoteLocator) -> BinaryPayload:
        filename = filename_from_locator(locator)

        if self._cache is not None:
            try:
                cached = await self._cache.get(filename)
            except CacheUnavailableError as exc:
                raise MediaCacheUnavailable(str(exc)) from exc
            if cached is not None:
                return BinaryPayload(filename=filename, content=cached, content_type=guess_media_type(filename))

        fetched = await self._byte_store.fetch_bytes(locator)
        return BinaryPayload(
            filename=filename,
            content=fetched.content,
            content_type=fetched.content_type or guess_media_type(filename),
        )

    # ------------------------------------------------------------------
    # Session cache
    # ------------------------------------------------------------------
    async def prime_cache(self) -> int:
        """Copy existing remote media into the session cache; best effort."""

        if self._cache is None or not self._existing:
            return 0

        async def _prime(locator: RemoteLocator) -> bool:
            filename = filename_from_locator(locator)
            if await self._cache.contains(filename):
                return False
            fetched = await self._byte_store.fetch_bytes(locator)
            await self._cache.put(filename, fetched.content)
            return True

        results = await asyncio.gather(*(_prime(loc) for loc in self._existing), return_exceptions=True)
        primed = 0
        for locator, result in zip(self._existing, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.warning("media_cache_prime_failed", locator=locator, error=str(result))
            elif result:
                primed += 1
        return primed

    async def purge_cache(self) -> int:
        """Remove this entity's cached media. Called after save and on cancel."""

        if self._cache is None:
            return 0
        filenames = {filename_from_locator(locator) for locator in self._existing}
        try:
            return await self._cache.purge(filenames)
        except CacheUnavailableError as exc:
            raise MediaCacheUnavailable(str(exc)) from exc


__all__ = ["MediaSetReconciler"]
