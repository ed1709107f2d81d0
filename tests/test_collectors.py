from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import delete, func, select

from errors import CollectorInUse, CollectorNotFound
from models import Collector, Frequency, User
from schemas import (
    CollectorIn,
    CollectorUpdateIn,
    ExpenseIn,
    ExpenseUpdateIn,
    RegisterIn,
)
from services import AuthService, CollectorService, EntryFilters, ExpenseService


def _expense(category, collector=None, description="Luz"):
    return ExpenseIn(
        description=description,
        amount=Decimal("420.00"),
        category_id=category.id,
        frequency=Frequency.one_time,
        due_date=date(2025, 8, 10),
        collector_id=collector.id if collector is not None else None,
    )


def _other_user(session):
    other = User(email="beto@example.com", name="Beto", password_hash="not-a-hash")
    session.add(other)
    session.commit()
    return other


def test_create_returns_existing_for_same_reference(session, user):
    service = CollectorService(session, user.id)
    cfe = service.create(CollectorIn(external_id=" 12345 ", name="CFE"))

    again = service.create(CollectorIn(external_id="12345", name="Otro nombre"))

    assert again.id == cfe.id
    assert again.name == "CFE"
    assert service.get_or_create("12345").id == cfe.id
    assert service.get_or_create("999").name == "Cobrador 999"
    assert [c.name for c in service.list_all()] == ["CFE", "Cobrador 999"]


def test_same_reference_is_separate_per_user(session, user):
    other = _other_user(session)
    mine = CollectorService(session, user.id).create(
        CollectorIn(external_id="12345", name="CFE")
    )
    theirs = CollectorService(session, other.id).create(
        CollectorIn(external_id="12345", name="CFE")
    )

    assert mine.id != theirs.id
    with pytest.raises(CollectorNotFound):
        CollectorService(session, other.id).get(mine.id)


def test_expenses_link_to_owned_collectors(session, user, make_category):
    servicios = make_category("Servicios")
    other = _other_user(session)
    foreign = CollectorService(session, other.id).create(
        CollectorIn(external_id="777", name="Ajeno")
    )
    cfe = CollectorService(session, user.id).create(CollectorIn(external_id="1", name="CFE"))
    expenses = ExpenseService(session, user.id)

    with pytest.raises(CollectorNotFound):
        expenses.create(_expense(servicios, foreign))

    linked = expenses.create(_expense(servicios, cfe))
    expenses.create(_expense(servicios, description="Agua"))
    assert linked.collector_id == cfe.id
    assert expenses.count(EntryFilters(collector_id=cfe.id)) == 1

    cleared = expenses.update(linked.id, ExpenseUpdateIn(collector_id=None))
    assert cleared.collector_id is None


def test_update_and_delete_rules(session, user, make_category):
    servicios = make_category("Servicios")
    service = CollectorService(session, user.id)
    cfe = service.create(CollectorIn(external_id="1", name="CFE"))
    expense = ExpenseService(session, user.id).create(_expense(servicios, cfe))

    assert service.update(cfe.id, CollectorUpdateIn(name="  Luz CFE ")).name == "Luz CFE"
    assert service.count_expenses(cfe.id) == 1
    assert service.expense_counts() == {cfe.id: 1}
    with pytest.raises(CollectorInUse):
        service.delete(cfe.id)

    ExpenseService(session, user.id).delete(expense.id)
    service.delete(cfe.id)
    with pytest.raises(CollectorNotFound):
        service.get(cfe.id)


def test_removing_collector_row_unlinks_expenses(session, user, make_category):
    servicios = make_category("Servicios")
    cfe = CollectorService(session, user.id).create(CollectorIn(external_id="1", name="CFE"))
    expense = ExpenseService(session, user.id).create(_expense(servicios, cfe))

    session.execute(delete(Collector).where(Collector.id == cfe.id))
    session.commit()
    session.refresh(expense)

    assert expense.collector_id is None


def test_delete_account_removes_collectors(session):
    owner, _ = AuthService(session).register(
        RegisterIn(email="eva@example.com", name="Eva", password="secreto1")
    )
    CollectorService(session, owner.id).create(CollectorIn(external_id="1", name="CFE"))

    AuthService(session).delete_account(owner.id, "secreto1")

    assert session.execute(select(func.count(Collector.id))).scalar_one() == 0


def _auth(client):
    response = client.post(
        "/api/auth/register",
        json={"email": "nora@example.com", "name": "Nora", "password": "secreto1"},
    )
    token = response.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


def test_collector_routes(client):
    headers = _auth(client)
    category = client.post(
        "/api/categories", json={"name": "Servicios", "type": "EXPENSE"}, headers=headers
    ).json()["data"]

    created = client.post(
        "/api/collectors", json={"external_id": "555", "name": "Telmex"}, headers=headers
    )
    assert created.status_code == 201
    collector = created.json()["data"]
    assert collector["external_id"] == "555"

    expense = client.post(
        "/api/expenses",
        json={
            "description": "Internet",
            "amount": 599,
            "category_id": category["id"],
            "frequency": "MONTHLY",
            "due_date": "2025-08-05",
            "collector_id": collector["id"],
        },
        headers=headers,
    )
    assert expense.json()["data"]["collector_id"] == collector["id"]

    listed = client.get(
        "/api/collectors", params={"include_expense_count": True}, headers=headers
    ).json()["data"]
    assert [(c["name"], c["expense_count"]) for c in listed] == [("Telmex", 1)]

    detail = client.get(f"/api/collectors/{collector['id']}", headers=headers).json()
    assert detail["data"]["expense_count"] == 1

    renamed = client.put(
        f"/api/collectors/{collector['id']}", json={"name": "Telmex Hogar"}, headers=headers
    )
    assert renamed.json()["data"]["name"] == "Telmex Hogar"

    blocked = client.delete(f"/api/collectors/{collector['id']}", headers=headers)
    assert blocked.status_code == 400
    assert blocked.json()["code"] == "COLLECTOR_IN_USE"

    missing = client.get("/api/collectors/9999", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["code"] == "COLLECTOR_NOT_FOUND"
