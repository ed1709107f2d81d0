from dataclasses import dataclass
from typing import Optional

import pytest

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
from hierarchy import CategoryForest


@dataclass
class Node:
    id: int
    name: str
    type: str = "EXPENSE"
    parent_id: Optional[int] = None
    depth: Optional[int] = None


def _forest() -> CategoryForest:
    # Vivienda > Servicios > Luz, plus a lone root and an income root.
    return CategoryForest(
        [
            Node(1, "Vivienda"),
            Node(2, "Servicios", parent_id=1),
            Node(3, "Luz", parent_id=2),
            Node(4, "Transporte"),
            Node(5, "Salario", type="INCOME"),
        ]
    )


def test_depth_is_derived_from_parent_links_when_not_cached():
    forest = _forest()
    assert forest.depth(1) == 0
    assert forest.depth(2) == 1
    assert forest.depth(3) == 2
    assert forest.root_of(3) == 1
    assert {node.id for node in forest.roots()} == {1, 4, 5}


def test_validate_create_returns_depth():
    forest = _forest()
    assert forest.validate_create("Comida", "EXPENSE") == 0
    assert forest.validate_create("Gasolina", "EXPENSE", 4) == 1
    assert forest.validate_create("Agua", "EXPENSE", 2) == 2


def test_validate_create_rejects_fourth_level():
    with pytest.raises(DepthExceeded):
        _forest().validate_create("Recibo", "EXPENSE", 3)


def test_duplicate_names_are_case_and_space_insensitive():
    forest = _forest()
    with pytest.raises(DuplicateName):
        forest.validate_create(" salario ", "INCOME")
    # Same name under another type is fine.
    assert forest.validate_create("Salario", "EXPENSE") == 0


def test_duplicate_name_is_checked_before_parent():
    with pytest.raises(DuplicateName):
        _forest().validate_create("Luz", "EXPENSE", 999)


def test_missing_parent_and_type_mismatch():
    forest = _forest()
    with pytest.raises(ParentNotFound):
        forest.validate_create("Gas", "EXPENSE", 999)
    with pytest.raises(TypeMismatch):
        forest.validate_create("Bono", "INCOME", 1)


def test_reparent_to_root_and_to_self():
    forest = _forest()
    assert forest.validate_reparent(3, None) == 0
    with pytest.raises(CircularReference):
        forest.validate_reparent(2, 2)


def test_reparent_under_own_descendant_is_circular():
    with pytest.raises(CircularReference):
        _forest().validate_reparent(1, 3)


def test_reparent_counts_subtree_height():
    forest = _forest()
    # Servicios carries Luz below it, so it cannot sit under depth 1.
    forest_with_extra = CategoryForest(
        list(forest) + [Node(6, "Gasolina", parent_id=4)]
    )
    with pytest.raises(DepthExceeded):
        forest_with_extra.validate_reparent(2, 6)
    assert forest_with_extra.validate_reparent(2, 4) == 1


def test_reparent_unknown_category_and_mismatched_type():
    forest = _forest()
    with pytest.raises(CategoryNotFound):
        forest.validate_reparent(42, None)
    with pytest.raises(TypeMismatch):
        forest.validate_reparent(4, 5)


def test_subtree_depths_shift_every_descendant():
    assert _forest().subtree_depths(2, 0) == {2: 0, 3: 1}


def test_validate_delete_order():
    forest = _forest()
    with pytest.raises(HasChildren, match="1 subcategorías"):
        forest.validate_delete(1, transaction_count=5)
    with pytest.raises(HasTransactions):
        forest.validate_delete(3, transaction_count=2)
    forest.validate_delete(3)
    with pytest.raises(CategoryNotFound):
        forest.validate_delete(77)


def test_descendants_and_children():
    forest = _forest()
    assert sorted(forest.descendants(1)) == [2, 3]
    assert [node.id for node in forest.children_of(2)] == [3]
    assert forest.ancestors(3) == [2, 1]
