"""Validation rules for the category forest.

Categories reference their parent by id only. ``CategoryForest`` is built
from the categories visible to one owner (their own plus the global ones)
and answers every hierarchy question from parent links and the cached
``depth`` of each node. Nothing here touches the database.
"""

from collections import defaultdict
from typing import Hashable, Iterable, Iterator, Optional, Protocol

from errors import (
    CategoryNotFound,
    CircularReference,
    DepthExceeded,
    DuplicateName,
    HasChildren,
    HasTransactions,
    ParentNotFound,
    TypeMismatch,
)

# Root categories have depth 0, so three levels in total.
MAX_DEPTH = 2


class CategoryLike(Protocol):
    id: Hashable
    name: str
    type: object
    parent_id: Optional[Hashable]
    depth: Optional[int]


def name_key(name: str) -> str:
    return name.strip().lower()


class CategoryForest:
    def __init__(self, categories: Iterable[CategoryLike]) -> None:
        self._by_id = {category.id: category for category in categories}
        self._children: Optional[dict[Hashable, list[Hashable]]] = None

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[CategoryLike]:
        return iter(self._by_id.values())

    def get(self, category_id: Hashable) -> Optional[CategoryLike]:
        return self._by_id.get(category_id)

    def _children_index(self) -> dict[Hashable, list[Hashable]]:
        if self._children is None:
            index: dict[Hashable, list[Hashable]] = defaultdict(list)
            for category in self._by_id.values():
                if category.parent_id is not None:
                    index[category.parent_id].append(category.id)
            self._children = index
        return self._children

    def children_of(self, category_id: Hashable) -> list[CategoryLike]:
        return [self._by_id[cid] for cid in self._children_index().get(category_id, [])]

    def roots(self) -> list[CategoryLike]:
        return [
            category
            for category in self._by_id.values()
            if category.parent_id is None or category.parent_id not in self._by_id
        ]

    def ancestors(self, category_id: Hashable) -> list[Hashable]:
        """Ids from the parent of ``category_id`` up to its root."""
        path: list[Hashable] = []
        seen = {category_id}
        current = self._by_id.get(category_id)
        while current is not None and current.parent_id is not None:
            parent_id = current.parent_id
            if parent_id in seen:
                break
            path.append(parent_id)
            seen.add(parent_id)
            current = self._by_id.get(parent_id)
        return path

    def root_of(self, category_id: Hashable) -> Hashable:
        path = self.ancestors(category_id)
        return path[-1] if path else category_id

    def depth(self, category_id: Hashable) -> int:
        category = self._by_id[category_id]
        cached = getattr(category, "depth", None)
        if cached is not None:
            return cached
        return len(self.ancestors(category_id))

    def descendants(self, category_id: Hashable) -> list[Hashable]:
        index = self._children_index()
        result: list[Hashable] = []
        pending = list(index.get(category_id, []))
        while pending:
            current = pending.pop()
            if current in result or current == category_id:
                continue
            result.append(current)
            pending.extend(index.get(current, []))
        return result

    def subtree_height(self, category_id: Hashable) -> int:
        index = self._children_index()
        height = 0
        level = [category_id]
        while True:
            level = [child for cid in level for child in index.get(cid, [])]
            if not level or height > MAX_DEPTH:
                return height
            height += 1

    def find_by_name(
        self,
        name: str,
        category_type: object,
        *,
        exclude_id: Optional[Hashable] = None,
    ) -> Optional[CategoryLike]:
        key = name_key(name)
        for category in self._by_id.values():
            if category.id == exclude_id:
                continue
            if category.type == category_type and name_key(category.name) == key:
                return category
        return None

    def ensure_unique_name(
        self,
        name: str,
        category_type: object,
        *,
        exclude_id: Optional[Hashable] = None,
    ) -> None:
        if self.find_by_name(name, category_type, exclude_id=exclude_id) is not None:
            raise DuplicateName()

    def validate_create(
        self,
        name: str,
        category_type: object,
        parent_id: Optional[Hashable] = None,
    ) -> int:
        """Check a new category and return the depth it must be stored with."""
        self.ensure_unique_name(name, category_type)
        if parent_id is None:
            return 0
        parent = self._by_id.get(parent_id)
        if parent is None:
            raise ParentNotFound()
        if parent.type != category_type:
            raise TypeMismatch()
        parent_depth = self.depth(parent_id)
        if parent_depth >= MAX_DEPTH:
            raise DepthExceeded()
        return parent_depth + 1

    def validate_reparent(
        self, category_id: Hashable, new_parent_id: Optional[Hashable]
    ) -> int:
        """Check moving ``category_id`` under ``new_parent_id``; return its new depth."""
        category = self._by_id.get(category_id)
        if category is None:
            raise CategoryNotFound()
        if new_parent_id is None:
            return 0
        if new_parent_id == category_id:
            raise CircularReference("Una categoría no puede ser su propio padre")
        parent = self._by_id.get(new_parent_id)
        if parent is None:
            raise ParentNotFound()
        if category_id in self.ancestors(new_parent_id):
            raise CircularReference(
                "Referencia circular detectada: el padre es un descendiente del hijo"
            )
        if parent.type != category.type:
            raise TypeMismatch()
        new_depth = self.depth(new_parent_id) + 1
        if new_depth + self.subtree_height(category_id) > MAX_DEPTH:
            raise DepthExceeded()
        return new_depth

    def subtree_depths(
        self, category_id: Hashable, new_depth: int
    ) -> dict[Hashable, int]:
        """Depth of every node in the subtree once its root sits at ``new_depth``."""
        index = self._children_index()
        depths = {category_id: new_depth}
        level = [category_id]
        while level:
            next_level: list[Hashable] = []
            for cid in level:
                for child in index.get(cid, []):
                    if child not in depths:
                        depths[child] = depths[cid] + 1
                        next_level.append(child)
            level = next_level
        return depths

    def validate_delete(self, category_id: Hashable, transaction_count: int = 0) -> None:
        if category_id not in self._by_id:
            raise CategoryNotFound()
        children = self._children_index().get(category_id, [])
        if children:
            raise HasChildren(f"La categoría tiene {len(children)} subcategorías")
        if transaction_count > 0:
            raise HasTransactions(
                f"La categoría tiene {transaction_count} transacciones asociadas"
            )
