"""
Dependent selection chain (province -> district -> ward).

Each level's options are fetched from the server once its parent level has
a selection. Changing a level clears every level beneath it, and responses
that arrive after the upstream selection moved on are discarded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from common.config import settings
from common.logging import get_logger
from common.schemas import LabelledOption

from .stores.base import GeoHierarchyStore

logger = get_logger(__name__)

OptionLoader = Callable[[Optional[str]], Awaitable[List[LabelledOption]]]

GEO_LEVELS = ("province", "district", "ward")


@dataclass
class CascadeLevel:
    """One tier of the chain."""

    name: str
    code: Optional[str] = None
    options: List[LabelledOption] = field(default_factory=list)
    loading: bool = False
    # Bumped whenever the level is invalidated; in-flight fetches compare against it.
    generation: int = 0

    def label_for(self, code: Optional[str]) -> str:
        if code is None:
            return ""
        for option in self.options:
            if option.code == code:
                return option.label
        return ""

    @property
    def selected_label(self) -> str:
        return self.label_for(self.code)

    def clear(self) -> None:
        self.code = None
        self.options = []
        self.loading = False
        self.generation += 1


@dataclass(frozen=True)
class CascadeWarning:
    """Non-fatal report of a failed option fetch."""

    level: int
    level_name: str
    parent_code: Optional[str]
    message: str


class DependentSelectionCascade:
    """Manage a chain of selections whose options depend on the level above.

    Usage:
        cascade = DependentSelectionCascade.for_geo_store(store)
        await cascade.load_root()
        await cascade.select_level(0, "79")   # loads districts
        await cascade.select_level(1, "760")  # loads wards
        cascade.compose_label("12 Nguyen Hue", most_specific_first=True)
    """

    def __init__(
        self,
        level_names: Sequence[str],
        loaders: Sequence[OptionLoader],
        separator: Optional[str] = None,
    ) -> None:
        if not level_names:
            raise ValueError("A cascade needs at least one level")
        if len(level_names) != len(loaders):
            raise ValueError("Each cascade level needs exactly one option loader")
        self._levels = [CascadeLevel(name=name) for name in level_names]
        self._loaders = list(loaders)
        self._separator = separator if separator is not None else settings.address_separator
        self._epoch = 0
        self._closed = False
        self.last_warning: Optional[CascadeWarning] = None

    @classmethod
    def for_geo_store(cls, store: GeoHierarchyStore, separator: Optional[str] = None) -> "DependentSelectionCascade":
        async def _regions(_: Optional[str]) -> List[LabelledOption]:
            return await store.list_regions()

        async def _sub_regions(code: Optional[str]) -> List[LabelledOption]:
            return await store.list_sub_regions(code or "")

        async def _sub_sub_regions(code: Optional[str]) -> List[LabelledOption]:
            return await store.list_sub_sub_regions(code or "")

        return cls(GEO_LEVELS, [_regions, _sub_regions, _sub_sub_regions], separator=separator)

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------
    @property
    def levels(self) -> List[CascadeLevel]:
        return self._levels

    @property
    def closed(self) -> bool:
        return self._closed

    def level(self, index: int) -> CascadeLevel:
        if not 0 <= index < len(self._levels):
            raise IndexError(f"Cascade level {index} out of range (0..{len(self._levels) - 1})")
        return self._levels[index]

    def selection(self) -> Dict[str, Optional[str]]:
        return {level.name: level.code for level in self._levels}

    @property
    def is_complete(self) -> bool:
        return all(level.code for level in self._levels)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def load_root(self) -> Optional[CascadeWarning]:
        """Fetch the options for level 0."""

        root = self._levels[0]
        root.generation += 1
        return await self._fetch(0, None)

    async def select_level(self, index: int, value: Optional[str]) -> Optional[CascadeWarning]:
        """Select ``value`` at ``index``, clear everything below, fetch the next level."""

        level = self.level(index)
        code = str(value).strip() if value is not None else ""
        level.code = code or None

        for downstream in self._levels[index + 1:]:
            downstream.clear()

        next_index = index + 1
        if not code or next_index >= len(self._levels):
            return None
        return await self._fetch(next_index, code)

    async def restore(self, codes: Sequence[Optional[str]]) -> List[CascadeWarning]:
        """Replay a saved selection top-down, loading each level on the way."""

        warnings: List[CascadeWarning] = []
        if not self._levels[0].options:
            warning = await self.load_root()
            if warning:
                warnings.append(warning)
        for index, code in enumerate(codes[: len(self._levels)]):
            if not code:
                break
            warning = await self.select_level(index, code)
            if warning:
                warnings.append(warning)
        return warnings

    def compose_label(
        self,
        street: Optional[str] = None,
        separator: Optional[str] = None,
        most_specific_first: bool = False,
    ) -> str:
        """Join the labels of every selected level, optionally prefixed by a street line."""

        sep = separator if separator is not None else self._separator
        labels = [level.selected_label for level in self._levels if level.code is not None]
        labels = [label for label in labels if label]
        if most_specific_first:
            labels.reverse()

        parts: List[str] = []
        if street and street.strip():
            parts.append(street.strip())
        parts.extend(labels)
        return sep.join(parts)

    def reset(self) -> None:
        """Clear every selection; root options are kept."""

        self._levels[0].code = None
        for level in self._levels[1:]:
            level.clear()

    def close(self) -> None:
        """Drop all selections and ignore any fetch still in flight."""

        self._epoch += 1
        self._closed = True
        for level in self._levels:
            level.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _fetch(self, index: int, parent_code: Optional[str]) -> Optional[CascadeWarning]:
        level = self._levels[index]
        token = level.generation
        epoch = self._epoch
        level.loading = True

        try:
            options = await self._loaders[index](parent_code)
        except Exception as exc:  # noqa: BLE001
            if self._is_stale(level, token, epoch):
                return None
            level.options = []
            level.loading = False
            warning = CascadeWarning(
                level=index,
                level_name=level.name,
                parent_code=parent_code,
                message=str(exc) or exc.__class__.__name__,
            )
            self.last_warning = warning
            logger.warning(
                "cascade_fetch_failed",
                level=level.name,
                parent_code=parent_code,
                error=warning.message,
            )
            return warning

        if self._is_stale(level, token, epoch):
            logger.debug("cascade_stale_response_dropped", level=level.name, parent_code=parent_code)
            return None

        level.options = list(options or [])
        level.loading = False
        return None

    def _is_stale(self, level: CascadeLevel, token: int, epoch: int) -> bool:
        return epoch != self._epoch or level.generation != token


__all__ = [
    "CascadeLevel",
    "CascadeWarning",
    "DependentSelectionCascade",
    "GEO_LEVELS",
    "OptionLoader",
]
