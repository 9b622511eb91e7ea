"""
Two-level amenity taxonomy: categories (no parent) and the items under them.

The server is the single source of truth. Every create, rename and delete
is followed by a full ``load_all`` instead of patching local state, so ids
and names used by the lookups below always match what the server assigned.
"""

from __future__ import annotations

from collections import OrderedDict
from contextlib import contextmanager
from typing import Iterator, List, Optional, Set, Tuple

from common.logging import get_logger

from .errors import NodeBusyError, StoreRejectedError, TaxonomyValidationError
from .models import TaxonomyNode, is_unpersisted
from .stores.base import TaxonomyStore

logger = get_logger(__name__)

UNGROUPED_LABEL = ""

# Store answers that mean "your input was refused", e.g. a duplicate name.
_VALIDATION_STATUSES = {400, 409, 422}


def partition(nodes: List[TaxonomyNode]) -> Tuple[List[TaxonomyNode], List[TaxonomyNode]]:
    """Split a flat node list into (categories, items) by ``parent_id``."""

    categories = [node for node in nodes if node.parent_id is None]
    items = [node for node in nodes if node.parent_id is not None]
    return categories, items


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise TaxonomyValidationError("Name must not be empty")
    return cleaned


class TaxonomyTree:
    """Categories and items of one entity, kept in sync with the taxonomy store."""

    def __init__(self, store: TaxonomyStore, entity_id: Optional[str] = None) -> None:
        self._store = store
        self._entity_id = entity_id
        self._categories: List[TaxonomyNode] = []
        self._items: List[TaxonomyNode] = []
        self._busy: Set[str] = set()
        self._load_seq = 0
        self._epoch = 0

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------
    @property
    def entity_id(self) -> Optional[str]:
        return self._entity_id

    @property
    def categories(self) -> List[TaxonomyNode]:
        return list(self._categories)

    @property
    def items(self) -> List[TaxonomyNode]:
        return list(self._items)

    def is_busy(self, node_id: str) -> bool:
        return node_id in self._busy

    def node(self, node_id: str) -> Optional[TaxonomyNode]:
        for candidate in (*self._categories, *self._items):
            if candidate.id == node_id:
                return candidate
        return None

    def resolve_category_id(self, name: str) -> Optional[str]:
        """Exact display-name match against loaded categories; never guesses."""

        for category in self._categories:
            if category.name == name:
                return category.id
        return None

    def category_name_for(self, item: TaxonomyNode) -> str:
        for category in self._categories:
            if category.id is not None and category.id == item.parent_id:
                return category.name
        return UNGROUPED_LABEL

    def items_of(self, category_id: str) -> List[TaxonomyNode]:
        return [item for item in self._items if item.parent_id == category_id]

    def grouped_items(self) -> "OrderedDict[str, List[TaxonomyNode]]":
        """Items grouped under their category's display name.

        Every category gets an entry (possibly empty). Items whose parent no
        longer resolves go under ``UNGROUPED_LABEL``.
        """

        groups: "OrderedDict[str, List[TaxonomyNode]]" = OrderedDict()
        for category in self._categories:
            groups.setdefault(category.name, [])
        for item in self._items:
            groups.setdefault(self.category_name_for(item), []).append(item)
        return groups

    def delete_warning(self, node_id: str) -> Optional[str]:
        """Confirmation text for deleting a category; ``None`` for items."""

        node = self.node(node_id)
        if node is None or not node.is_category:
            return None
        count = len(self.items_of(node_id))
        if count == 0:
            return f'Delete category "{node.name}"?'
        noun = "item" if count == 1 else "items"
        return f'Deleting category "{node.name}" will also remove its {count} {noun}.'

    # ------------------------------------------------------------------
    # Remote operations
    # ------------------------------------------------------------------
    async def load_all(self, entity_id: Optional[str] = None) -> Tuple[List[TaxonomyNode], List[TaxonomyNode]]:
        """Fetch the flat node list and re-derive categories and items from it."""

        if entity_id is not None:
            self._entity_id = entity_id
        target = self._entity_id
        if is_unpersisted(target):
            self._categories, self._items = [], []
            return [], []

        self._load_seq += 1
        seq = self._load_seq
        epoch = self._epoch

        nodes = await self._store.list_nodes(target)  # type: ignore[arg-type]
        categories, items = partition(list(nodes))

        if seq != self._load_seq or epoch != self._epoch:
            logger.debug("taxonomy_stale_reload_dropped", entity_id=target, seq=seq)
            return categories, items

        self._categories, self._items = categories, items
        logger.debug(
            "taxonomy_loaded",
            entity_id=target,
            categories=len(categories),
            items=len(items),
        )
        return categories, items

    async def create_category(self, entity_id: str, name: str) -> Tuple[List[TaxonomyNode], List[TaxonomyNode]]:
        cleaned = _clean_name(name)
        self._require_persisted(entity_id)
        await self._call_store(self._store.create_node(entity_id, cleaned, None))
        logger.info("taxonomy_category_created", entity_id=entity_id, name=cleaned)
        return await self.load_all(entity_id)

    async def create_item(
        self, entity_id: str, name: str, parent_id: Optional[str]
    ) -> Tuple[List[TaxonomyNode], List[TaxonomyNode]]:
        cleaned = _clean_name(name)
        if not parent_id:
            raise TaxonomyValidationError("An item needs a resolved parent category id")
        self._require_persisted(entity_id)
        if self.is_busy(parent_id):
            raise NodeBusyError(parent_id)
        await self._call_store(self._store.create_node(entity_id, cleaned, parent_id))
        logger.info("taxonomy_item_created", entity_id=entity_id, name=cleaned, parent_id=parent_id)
        return await self.load_all(entity_id)

    async def rename(self, node_id: str, name: str) -> Tuple[List[TaxonomyNode], List[TaxonomyNode]]:
        cleaned = _clean_name(name)
        with self._node_busy(node_id):
            current = self.node(node_id)
            parent_id = current.parent_id if current is not None else None
            await self._call_store(
                self._store.rename_node(node_id, cleaned, parent_id, entity_id=self._entity_id)
            )
            logger.info("taxonomy_node_renamed", node_id=node_id, name=cleaned)
            return await self.load_all()

    async def delete(self, node_id: str) -> Tuple[List[TaxonomyNode], List[TaxonomyNode]]:
        """Delete one node. Items of a deleted category are the server's concern."""

        with self._node_busy(node_id):
            await self._call_store(self._store.delete_node(node_id))
            logger.info("taxonomy_node_deleted", node_id=node_id)
            return await self.load_all()

    def close(self) -> None:
        """Forget local state and ignore reloads still in flight."""

        self._epoch += 1
        self._categories, self._items = [], []
        self._busy.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @contextmanager
    def _node_busy(self, node_id: str) -> Iterator[None]:
        if not node_id:
            raise TaxonomyValidationError("A node id is required")
        if node_id in self._busy:
            raise NodeBusyError(node_id)
        self._busy.add(node_id)
        try:
            yield
        finally:
            self._busy.discard(node_id)

    def _require_persisted(self, entity_id: str) -> None:
        if is_unpersisted(entity_id):
            raise TaxonomyValidationError("Save the entity before adding amenities")

    async def _call_store(self, awaitable):
        try:
            return await awaitable
        except StoreRejectedError as exc:
            if exc.status_code in _VALIDATION_STATUSES:
                raise TaxonomyValidationError(exc.message) from exc
            raise


__all__ = ["TaxonomyTree", "UNGROUPED_LABEL", "partition"]
