from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from errors import (
    CategoryNotFound,
    CircularReference,
    DepthExceeded,
    DuplicateName,
    HasChildren,
    HasTransactions,
    TypeMismatch,
)
from hierarchy import CategoryForest
from models import CategoryType, Frequency
from schemas import CategoryIn, CategoryUpdateIn, ExpenseIn
from seed import run as run_seed
from services import CategoryService, ExpenseService


def _create(service, name, parent=None, category_type=CategoryType.expense):
    return service.create(
        CategoryIn(
            name=name,
            type=category_type,
            parent_id=parent.id if parent is not None else None,
        )
    )


def test_create_three_levels_and_reject_fourth(session, user):
    service = CategoryService(session, user.id)
    vivienda = _create(service, "Vivienda")
    servicios = _create(service, "Servicios", vivienda)
    luz = _create(service, "Luz", servicios)

    assert (vivienda.depth, servicios.depth, luz.depth) == (0, 1, 2)
    with pytest.raises(DepthExceeded):
        _create(service, "Recibo", luz)


def test_duplicate_name_case_insensitive(session, user):
    service = CategoryService(session, user.id)
    _create(service, "Salario", category_type=CategoryType.income)

    with pytest.raises(DuplicateName):
        _create(service, "salario", category_type=CategoryType.income)
    assert _create(service, "Salario").type == CategoryType.expense


def test_global_categories_are_visible_but_not_editable(session, user, make_category):
    sueldo = make_category("Sueldo", CategoryType.income)
    service = CategoryService(session, user.id)

    assert service.get(sueldo.id).is_global
    with pytest.raises(DuplicateName):
        _create(service, "SUELDO", category_type=CategoryType.income)
    with pytest.raises(CategoryNotFound):
        service.update(sueldo.id, CategoryUpdateIn(name="Nómina"))
    with pytest.raises(CategoryNotFound):
        service.delete(sueldo.id)

    bono = _create(service, "Bono", sueldo, CategoryType.income)
    assert bono.depth == 1


def test_other_users_categories_are_hidden(session, user, make_category):
    private = make_category("Privada", user_id=user.id)
    with pytest.raises(CategoryNotFound):
        CategoryService(session, user.id + 1).get(private.id)


def test_delete_parent_requires_children_gone_first(session, user):
    service = CategoryService(session, user.id)
    parent = _create(service, "Transporte")
    child = _create(service, "Gasolina", parent)

    with pytest.raises(HasChildren):
        service.delete(parent.id)

    service.delete(child.id)
    service.delete(parent.id)
    assert service.list().total == 0


def test_delete_category_in_use(session, user):
    service = CategoryService(session, user.id)
    category = _create(service, "Comida")
    ExpenseService(session, user.id).create(
        ExpenseIn(
            description="Mercado",
            amount=Decimal("350.00"),
            category_id=category.id,
            frequency=Frequency.one_time,
            due_date=date(2025, 8, 1),
        )
    )

    with pytest.raises(HasTransactions):
        service.delete(category.id)
    assert service.dependencies(category.id)["can_delete"] is False


def test_reparent_rewrites_subtree_depths(session, user):
    service = CategoryService(session, user.id)
    root = _create(service, "Hogar")
    middle = _create(service, "Servicios", root)
    leaf = _create(service, "Agua", middle)

    service.update(middle.id, CategoryUpdateIn(parent_id=None))

    session.refresh(middle)
    session.refresh(leaf)
    assert middle.parent_id is None
    assert (middle.depth, leaf.depth) == (0, 1)


def test_reparent_into_own_subtree_is_rejected(session, user):
    service = CategoryService(session, user.id)
    root = _create(service, "Hogar")
    middle = _create(service, "Servicios", root)
    leaf = _create(service, "Agua", middle)

    with pytest.raises(CircularReference):
        service.update(root.id, CategoryUpdateIn(parent_id=leaf.id))


def test_update_without_parent_keeps_it(session, user):
    service = CategoryService(session, user.id)
    root = _create(service, "Hogar")
    child = _create(service, "Servicios", root)

    updated = service.update(child.id, CategoryUpdateIn(name="servicios", color="#22c55e"))

    assert updated.parent_id == root.id
    assert updated.name == "servicios"
    assert updated.color == "#22c55e"


def test_search_falls_back_to_one_typo(session, user):
    service = CategoryService(session, user.id)
    _create(service, "Supermercado")
    _create(service, "Gas")

    assert [c.name for c in service.search("super")] == ["Supermercado"]
    assert [c.name for c in service.search("Gaz")] == ["Gas"]
    assert service.search("zzzz") == []


def test_hierarchy_nests_children(session, user):
    service = CategoryService(session, user.id)
    root = _create(service, "Hogar")
    _create(service, "Servicios", root)

    tree = service.hierarchy(CategoryType.expense)
    assert len(tree) == 1
    assert tree[0]["category"].name == "Hogar"
    assert [node["category"].name for node in tree[0]["children"]] == ["Servicios"]


def test_seed_is_idempotent(session):
    first = run_seed(session)
    session.commit()
    second = run_seed(session)

    assert first["categories_created"] > 0
    assert second["categories_created"] == 0
    assert second["demo_user_id"] == first["demo_user_id"]


def test_reparent_through_service_checks_depth_and_type(session, user):
    service = CategoryService(session, user.id)
    hogar = _create(service, "Hogar")
    servicios = _create(service, "Servicios", hogar)
    ocio = _create(service, "Ocio")
    _create(service, "Cine", ocio)
    sueldo = _create(service, "Sueldo", category_type=CategoryType.income)

    with pytest.raises(DepthExceeded):
        service.update(ocio.id, CategoryUpdateIn(parent_id=servicios.id))
    with pytest.raises(TypeMismatch):
        service.update(ocio.id, CategoryUpdateIn(parent_id=sueldo.id))

    session.refresh(ocio)
    assert (ocio.parent_id, ocio.depth) == (None, 0)


def test_storage_rejects_duplicate_missed_by_validation(monkeypatch, session, user):
    service = CategoryService(session, user.id)
    _create(service, "Comida")
    # Another writer committed the same name after the forest was read.
    monkeypatch.setattr(CategoryForest, "validate_create", lambda *args: 0)

    with pytest.raises(DuplicateName):
        _create(service, "COMIDA")
    assert [c.name for c in service.list(include_global=False).items] == ["Comida"]


def test_global_names_are_unique_in_storage(make_category):
    make_category("Salud")
    with pytest.raises(IntegrityError):
        make_category("salud")


def test_usage_sums_entries_per_kind(session, user):
    service = CategoryService(session, user.id)
    comida = _create(service, "Comida")
    expenses = ExpenseService(session, user.id)
    for amount, due in (("350.00", date(2025, 8, 1)), ("150.50", date(2025, 8, 20))):
        expenses.create(
            ExpenseIn(
                description="Mercado",
                amount=Decimal(amount),
                category_id=comida.id,
                frequency=Frequency.one_time,
                due_date=due,
            )
        )

    usage = service.usage(comida.id)

    assert usage["category_id"] == comida.id
    assert usage["expenses"] == {
        "count": 2,
        "total": Decimal("500.50"),
        "last_date": "2025-08-20",
    }
    assert usage["incomes"] == {"count": 0, "total": Decimal("0.00"), "last_date": None}
