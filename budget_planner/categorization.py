"""Expense category hierarchy.

Categories arrive as a flat collection where each row may point at a parent.
:class:`CategoryTree` turns that into an explicit two-level structure once, so
aggregation never walks parent pointers per record.

Rows nested deeper than two levels collapse onto their root group. Rows whose
parent chain is dangling or cyclic resolve to the synthetic uncategorized group.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from .models import Category

UNCATEGORIZED_GROUP_ID = 0
UNCATEGORIZED_GROUP_NAME = 'Uncategorized'


@dataclass
class Group:
    id: int
    name: str
    subgroup_ids: List[int] = field(default_factory=list)


def _coerce(category: Union[Category, Dict[str, Any]]) -> Category:
    if isinstance(category, Category):
        return category
    return Category.from_dict(category)


class CategoryTree:
    """Two-level view over a flat category collection.

    Example:
        >>> tree = CategoryTree([Category(1, 'Home'), Category(2, 'Rent', parent_id=1)])
        >>> tree.group_of(2)
        1
        >>> tree.groups[1].subgroup_ids
        [2]
    """

    def __init__(self, categories: Iterable[Union[Category, Dict[str, Any]]] = ()):
        self._categories: Dict[int, Category] = {}
        for raw in categories:
            category = _coerce(raw)
            self._categories.setdefault(category.id, category)

        # Insertion order follows the category collection
        self.groups: Dict[int, Group] = {}
        self._root_of: Dict[int, int] = {}

        for category in self._categories.values():
            if category.is_group:
                self.groups[category.id] = Group(category.id, category.name)

        for category in self._categories.values():
            root = self._find_root(category)
            if root is None:
                continue
            self._root_of[category.id] = root
            if category.id != root:
                self.groups[root].subgroup_ids.append(category.id)

    def _find_root(self, category: Category) -> Optional[int]:
        seen = set()
        current = category
        while current.parent_id is not None:
            if current.id in seen:
                return None
            seen.add(current.id)
            parent = self._categories.get(current.parent_id)
            if parent is None:
                return None
            current = parent
        return current.id

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._categories

    def __len__(self) -> int:
        return len(self._categories)

    def name_of(self, category_id: Optional[int]) -> Optional[str]:
        if category_id == UNCATEGORIZED_GROUP_ID:
            return UNCATEGORIZED_GROUP_NAME
        category = self._categories.get(category_id)
        return category.name if category else None

    def group_of(self, category_id: Optional[int]) -> Optional[int]:
        """Root group id for a category, or ``None`` when it cannot be resolved."""
        if category_id is None:
            return None
        return self._root_of.get(category_id)

    def resolve(self, group_id: Optional[int], subgroup_id: Optional[int]) -> Optional[int]:
        """Group a record with ``group_id``/``subgroup_id`` belongs to.

        The subgroup's root wins when known, otherwise the group's root. ``None``
        means the record belongs in the uncategorized group.
        """
        root = self.group_of(subgroup_id)
        if root is None:
            root = self.group_of(group_id)
        return root

    def subgroup_within(self, group_id: int, subgroup_id: Optional[int]) -> Optional[int]:
        """``subgroup_id`` if it is a subgroup of ``group_id``, else ``None``."""
        if subgroup_id is None or subgroup_id == group_id:
            return None
        if self.group_of(subgroup_id) != group_id:
            return None
        return subgroup_id

    def detail_of(self, group_id: Optional[int], subgroup_id: Optional[int]) -> Optional[int]:
        """Subgroup a record with ``group_id``/``subgroup_id`` is detailed under.

        ``subgroup_id`` wins when it sits under the resolved group. A record
        filed with a subgroup in ``group_id`` is detailed under that subgroup.
        """
        root = self.resolve(group_id, subgroup_id)
        if root is None:
            return None
        for candidate in (subgroup_id, group_id):
            detail = self.subgroup_within(root, candidate)
            if detail is not None:
                return detail
        return None
