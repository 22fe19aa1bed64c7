"""Usage index: which component trees reference which components."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from tessera.core.models import ComponentInstance


class UsageIndex:
    """Tracks component usage per tree (a tree is any host field holding instances).

    ``complete`` marks an index that lists every stored tree. Only a complete
    index can show that a component is unused.
    """

    def __init__(self, complete: bool = False) -> None:
        self.complete = complete
        self._trees: dict[str, set[str]] = {}
        self._components: dict[str, set[str]] = defaultdict(set)

    @classmethod
    def from_trees(cls, trees: dict[str, Iterable[ComponentInstance]], complete: bool = True) -> UsageIndex:
        index = cls(complete=complete)
        for tree_id, instances in trees.items():
            index.record(tree_id, instances)
        return index

    def record(self, tree_id: str, instances: Iterable[ComponentInstance]) -> None:
        """Replace whatever was known about ``tree_id`` with its current instances."""
        self.forget(tree_id)
        component_ids = {instance.component_id for instance in instances}
        self._trees[tree_id] = component_ids
        for component_id in component_ids:
            self._components[component_id].add(tree_id)

    def forget(self, tree_id: str) -> None:
        for component_id in self._trees.pop(tree_id, set()):
            self._components[component_id].discard(tree_id)
            if not self._components[component_id]:
                del self._components[component_id]

    def usages(self, component_id: str) -> list[str]:
        return sorted(self._components.get(component_id, ()))

    def count(self, component_id: str) -> int:
        return len(self._components.get(component_id, ()))

    def is_used(self, component_id: str) -> bool:
        return self.count(component_id) > 0

    def is_known_unused(self, component_id: str) -> bool:
        return self.complete and not self.is_used(component_id)

    def to_dict(self) -> dict[str, list[str]]:
        return {tree_id: sorted(ids) for tree_id, ids in sorted(self._trees.items())}
