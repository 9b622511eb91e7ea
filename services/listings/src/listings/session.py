"""
Edit session for one apartment or project.

The session is built once from the entity snapshot and is the only thing
the screen mutates afterwards: scalar edits are buffered in
``pending_fields``, media edits go through the reconciler, amenities through
the taxonomy tree and the structured address through the cascade. The
snapshot itself is never modified; a successful save replaces it with the
server's answer.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from common.cache import ByteCache, SessionMediaCache
from common.logging import get_logger, log_context

from .cascade import CascadeWarning, DependentSelectionCascade
from .errors import InvalidMapUrlError, MediaCacheUnavailable, SessionStateError
from .geo import GeoUrlExtractor, geo_url_extractor, is_short_link
from .media import MediaSetReconciler
from .models import Coordinates, EditMode, EntityKind, EntitySnapshot
from .stores.base import EntityStore, GeoHierarchyStore, MediaByteStore, TaxonomyStore
from .taxonomy import TaxonomyTree

logger = get_logger(__name__)


class EditSession:
    """Composes media, taxonomy, address cascade and map-link parsing for one entity."""

    def __init__(
        self,
        snapshot: EntitySnapshot,
        entity_store: EntityStore,
        byte_store: MediaByteStore,
        cache: Optional[SessionMediaCache] = None,
        taxonomy: Optional[TaxonomyTree] = None,
        geo_store: Optional[GeoHierarchyStore] = None,
        extractor: Optional[GeoUrlExtractor] = None,
    ) -> None:
        self.session_id = uuid.uuid4().hex
        self._snapshot = snapshot
        self._entity_store = entity_store
        self._byte_store = byte_store
        self._cache = cache
        self._geo_store = geo_store
        self._extractor = extractor or geo_url_extractor
        self._mode = EditMode.VIEWING
        self._epoch = 0
        self.pending_fields: Dict[str, Any] = {}
        self.street: Optional[str] = snapshot.street
        self.media = MediaSetReconciler(snapshot.media, byte_store, cache)
        self.taxonomy = taxonomy
        self.cascade: Optional[DependentSelectionCascade] = None
        self.log = logger.bind(entity=snapshot.kind.value, entity_id=snapshot.id, session_id=self.session_id)

    @classmethod
    async def open(
        cls,
        kind: EntityKind,
        entity_id: str,
        *,
        entity_store: EntityStore,
        byte_store: MediaByteStore,
        taxonomy_store: Optional[TaxonomyStore] = None,
        geo_store: Optional[GeoHierarchyStore] = None,
        byte_cache: Optional[ByteCache] = None,
        extractor: Optional[GeoUrlExtractor] = None,
    ) -> "EditSession":
        """Load the entity and prepare every component the screen will need."""

        snapshot = await entity_store.get_entity(kind, entity_id)
        cache = SessionMediaCache(byte_cache, kind.cache_prefix, snapshot.id) if byte_cache is not None else None
        taxonomy = TaxonomyTree(taxonomy_store, snapshot.id) if taxonomy_store is not None else None

        session = cls(
            snapshot,
            entity_store,
            byte_store,
            cache=cache,
            taxonomy=taxonomy,
            geo_store=geo_store,
            extractor=extractor,
        )
        primed = await session.media.prime_cache()
        if taxonomy is not None:
            await taxonomy.load_all()
        await session.prepare_address()
        session.log.info("edit_session_opened", media=len(snapshot.media), primed=primed)
        return session

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------
    @property
    def snapshot(self) -> EntitySnapshot:
        return self._snapshot

    @property
    def mode(self) -> EditMode:
        return self._mode

    @property
    def coordinates(self) -> Optional[Coordinates]:
        lat = self.pending_fields.get("latitude")
        lng = self.pending_fields.get("longitude")
        if lat is not None and lng is not None:
            return Coordinates(float(lat), float(lng))
        return self._snapshot.coordinates

    # ------------------------------------------------------------------
    # Mode transitions
    # ------------------------------------------------------------------
    def begin_edit(self) -> None:
        if self._mode is not EditMode.VIEWING:
            raise SessionStateError(f"Cannot start editing while {self._mode.value}")
        self._mode = EditMode.EDITING

    async def prepare_address(self) -> list[CascadeWarning]:
        """Build the address cascade (if a geo store is wired) and replay the saved selection."""

        if self._geo_store is None:
            return []
        if self.cascade is None:
            self.cascade = DependentSelectionCascade.for_geo_store(self._geo_store)
        snap = self._snapshot
        if snap.has_structured_address:
            return await self.cascade.restore([snap.region_code, snap.sub_region_code, snap.sub_sub_region_code])
        warning = await self.cascade.load_root()
        return [warning] if warning else []

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------
    def _require_editing(self) -> None:
        if self._mode is not EditMode.EDITING:
            raise SessionStateError(f"Session is {self._mode.value}, not editing")

    def set_field(self, name: str, value: Any) -> None:
        self._require_editing()
        self.pending_fields[name] = value

    def set_coordinates(self, latitude: float, longitude: float) -> None:
        self._require_editing()
        self.pending_fields["latitude"] = str(latitude)
        self.pending_fields["longitude"] = str(longitude)

    def apply_map_url(self, url: str) -> Coordinates:
        """Parse a pasted map link and buffer its coordinates."""

        self._require_editing()
        coords = self._extractor.extract(url)
        if coords is None:
            raise InvalidMapUrlError(url, short_link=is_short_link(url))
        self.set_coordinates(coords.latitude, coords.longitude)
        return coords

    def compose_address(self) -> Optional[str]:
        if self.cascade is None or self.cascade.levels[0].code is None:
            return None
        return self.cascade.compose_label(self.street, most_specific_first=True)

    def build_fields(self) -> Dict[str, Any]:
        """Full scalar field set for the update.

        The update endpoint replaces the record, so the snapshot's scalars are
        resent and the session's edits are laid over them.
        """

        snap = self._snapshot
        fields: Dict[str, Any] = {
            name: value for name, value in snap.fields.items() if not isinstance(value, (dict, list))
        }
        if snap.latitude is not None and snap.longitude is not None:
            fields["latitude"] = str(snap.latitude)
            fields["longitude"] = str(snap.longitude)
        if self.street is not None:
            fields["address"] = self.street.strip()
        for name, code in (
            ("provinceCode", snap.region_code),
            ("districtCode", snap.sub_region_code),
            ("wardCode", snap.sub_sub_region_code),
        ):
            if code is not None:
                fields[name] = code

        fields.update(self.pending_fields)
        full_address = self.compose_address()
        if full_address is not None and self.cascade is not None:
            region, sub_region, sub_sub_region = (level.code for level in self.cascade.levels)
            fields["fullAddress"] = full_address
            fields["address"] = (self.street or "").strip()
            fields["provinceCode"] = region
            fields["districtCode"] = sub_region
            fields["wardCode"] = sub_sub_region
        return fields

    # ------------------------------------------------------------------
    # Save / cancel
    # ------------------------------------------------------------------
    async def save(self) -> EntitySnapshot:
        """Submit buffered fields plus the reconciled media list.

        On any failure the session goes back to editing with its buffers
        intact and the error propagates; nothing is partially submitted.
        """

        self._require_editing()
        self._mode = EditMode.SAVING
        epoch = self._epoch
        snap = self._snapshot

        with log_context(session_id=self.session_id, entity=snap.kind.value, entity_id=snap.id):
            try:
                fields = self.build_fields()
                media = await self.media.build_submission_payload()
                updated = await self._entity_store.update_entity(snap.kind, snap.id, fields, media)
            except Exception:
                if epoch == self._epoch:
                    self._mode = EditMode.EDITING
                self.log.exception("edit_session_save_failed")
                raise

        if epoch != self._epoch:
            self.log.info("edit_session_save_completed_after_close")
            return updated

        await self._purge_cache()
        self._snapshot = updated
        self.pending_fields = {}
        self.street = updated.street
        self.media = MediaSetReconciler(updated.media, self._byte_store, self._cache)
        self._mode = EditMode.VIEWING
        self.log.info("edit_session_saved", media=len(media), fields=sorted(fields))
        return updated

    async def cancel(self, restore_address: bool = True) -> None:
        """Drop every local edit, purge the session cache, replay the saved address.

        State is cleared before the first suspension point, so a completion
        arriving later sees a bumped session epoch and is ignored. The old
        cascade is closed and a fresh one takes its place.
        """

        self._epoch += 1
        self.pending_fields = {}
        self.street = self._snapshot.street
        self.media.close()
        if self.cascade is not None:
            self.cascade.close()
            self.cascade = None
        if restore_address and self._geo_store is not None:
            self.cascade = DependentSelectionCascade.for_geo_store(self._geo_store)
        self._mode = EditMode.VIEWING
        epoch = self._epoch
        self.log.info("edit_session_cancelled")
        await self._purge_cache()
        if restore_address and epoch == self._epoch:
            await self.prepare_address()

    async def close(self) -> None:
        """Abandon the session entirely (screen unmounted)."""

        await self.cancel(restore_address=False)
        if self.taxonomy is not None:
            self.taxonomy.close()

    async def _purge_cache(self) -> None:
        try:
            await self.media.purge_cache()
        except MediaCacheUnavailable as exc:
            self.log.warning("media_cache_purge_failed", error=str(exc))


__all__ = ["EditSession"]
