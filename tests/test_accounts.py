from decimal import Decimal

import pytest

from errors import AccountNotFound
from models import AccountType
from schemas import AccountIn, AccountUpdateIn
from services import AccountService


def test_create_update_delete(session, user):
    service = AccountService(session, user.id)

    ahorro = service.create(
        AccountIn(name="  Ahorro ", type=AccountType.savings, balance=Decimal("2500.50"))
    )
    assert (ahorro.name, ahorro.currency, ahorro.balance) == (
        "Ahorro",
        "MXN",
        Decimal("2500.50"),
    )

    tarjeta = service.create(
        AccountIn(name="Tarjeta", type=AccountType.credit, currency="usd")
    )
    assert tarjeta.currency == "USD"
    assert [a.name for a in service.list_all()] == ["Ahorro", "Tarjeta"]

    updated = service.update(
        ahorro.id, AccountUpdateIn(balance=Decimal("3000"), type=AccountType.investment)
    )
    assert updated.balance == Decimal("3000")
    assert updated.type == AccountType.investment
    assert updated.name == "Ahorro"

    service.delete(tarjeta.id)
    assert [a.id for a in service.list_all()] == [ahorro.id]


def test_accounts_are_scoped_to_owner(session, user):
    account = AccountService(session, user.id).create(
        AccountIn(name="Nómina", type=AccountType.checking)
    )
    other = AccountService(session, user.id + 1)

    with pytest.raises(AccountNotFound):
        other.get(account.id)
    with pytest.raises(AccountNotFound):
        other.update(account.id, AccountUpdateIn(name="Mía"))
    with pytest.raises(AccountNotFound):
        other.delete(account.id)
    assert other.list_all() == []


def _auth(client):
    response = client.post(
        "/api/auth/register",
        json={"email": "marta@example.com", "name": "Marta", "password": "secreto1"},
    )
    token = response.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


def test_account_routes(client):
    headers = _auth(client)

    created = client.post(
        "/api/accounts",
        json={"name": "Inversión", "type": "INVESTMENT", "balance": 1000},
        headers=headers,
    )
    assert created.status_code == 201
    account = created.json()["data"]
    assert account["balance"] == 1000.0
    assert account["currency"] == "MXN"

    updated = client.put(
        f"/api/accounts/{account['id']}",
        json={"name": "Fondo", "balance": 1250.75},
        headers=headers,
    )
    assert updated.json()["data"]["name"] == "Fondo"
    assert updated.json()["data"]["balance"] == 1250.75

    names = [a["name"] for a in client.get("/api/accounts", headers=headers).json()["data"]]
    assert names == ["Cuenta Principal", "Fondo"]

    assert client.delete(f"/api/accounts/{account['id']}", headers=headers).status_code == 200
    missing = client.get(f"/api/accounts/{account['id']}", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["code"] == "ACCOUNT_NOT_FOUND"

    invalid = client.post(
        "/api/accounts", json={"name": "X", "type": "CASH"}, headers=headers
    )
    assert invalid.status_code == 400
    assert invalid.json()["code"] == "VALIDATION_ERROR"
