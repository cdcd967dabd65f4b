"""
In-memory read cache behind the passive HTTP API
Each family is one immutable view (ordered list + id index) replaced as a whole
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

TEMPERATURE = "temperature"
UPS = "ups"
FAMILIES = (TEMPERATURE, UPS)


@dataclass(frozen=True)
class FamilyView:
    """Consistent state of one family: items and index always belong together"""
    items: Tuple[Any, ...] = ()
    by_id: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    updated_at: Optional[datetime] = None

    @classmethod
    def build(cls, items: Iterable[Any]) -> "FamilyView":
        ordered = tuple(items)
        return cls(
            items=ordered,
            by_id=MappingProxyType({item.meta.id: item for item in ordered}),
            updated_at=datetime.now(timezone.utc),
        )


class PassiveCache:
    """
    Latest list of every family, readable while updates happen
    Views are immutable and replaced by a single assignment, so readers need no lock
    """

    def __init__(self):
        self._views: Dict[str, FamilyView] = {family: FamilyView() for family in FAMILIES}
        self.update_counts: Dict[str, int] = {family: 0 for family in FAMILIES}

    def _check_family(self, family: str):
        if family not in self._views:
            raise KeyError(f"Unknown family: {family}")

    def set(self, family: str, items: Iterable[Any]):
        """Rebuild the family from items and swap it in"""
        self._check_family(family)
        view = FamilyView.build(items)
        self._views[family] = view
        self.update_counts[family] += 1
        logger.debug(f"Cache updated: {family} now holds {len(view.items)} items")

    def view(self, family: str) -> FamilyView:
        self._check_family(family)
        return self._views[family]

    def get_all(self, family: str) -> List[Any]:
        return list(self.view(family).items)

    def get_by_id(self, family: str, item_id: str) -> Optional[Any]:
        return self.view(family).by_id.get(item_id)

    def counts(self) -> Dict[str, int]:
        return {family: len(view.items) for family, view in self._views.items()}
