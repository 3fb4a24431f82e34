from decimal import Decimal

import httpx
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_attachments, get_db, get_exchange_rates
from app.db.base import Base
from app.main import app
from app.models.account import Account
from app.models.enums import AccountType, Currency, ProjectRole, SystemRole
from app.models.project import Project, ProjectMember
from app.models.user import User
from app.services.attachments import LocalAttachmentStore
from app.services.exchange_rates import ExchangeRateProvider
from app.services.permissions import default_permissions
from app.services.seed import DEMO_ADMIN_EMAIL
from app.utils.decimal_math import money


def _client(tmp_path) -> tuple[TestClient, sessionmaker]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    def override_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    rates = ExchangeRateProvider(
        "https://rates.test/latest/USD",
        transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={"rates": {"USD": 1, "VND": 25000, "KHR": 4000, "TRY": 35}})
        ),
    )
    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_exchange_rates] = lambda: rates
    app.dependency_overrides[get_attachments] = lambda: LocalAttachmentStore(
        tmp_path, base_url="/attachments", max_bytes=1024
    )
    return TestClient(app), factory


def _seed(factory: sessionmaker) -> dict[str, int]:
    db: Session = factory()
    admin = User(email=DEMO_ADMIN_EMAIL, full_name="Admin", system_role=SystemRole.admin, is_active=True)
    member = User(email="member@test.com", full_name="Member", system_role=SystemRole.user, is_active=True)
    manager = User(email="manager@test.com", full_name="Manager", system_role=SystemRole.user, is_active=True)
    project = Project(name="Fit-out", currency=Currency.VND, budget=money("100000000"))
    db.add_all([admin, member, manager, project])
    db.flush()
    for user, role in [(member, ProjectRole.MEMBER), (manager, ProjectRole.MANAGER)]:
        db.add(ProjectMember(project_id=project.id, user_id=user.id, role=role, permissions=default_permissions(role)))
    vnd = Account(
        name="Operating VND",
        account_type=AccountType.BANK,
        currency=Currency.VND,
        opening_balance=money("10000000"),
        balance=money("10000000"),
        project_id=project.id,
    )
    usd = Account(
        name="Operating USD",
        account_type=AccountType.BANK,
        currency=Currency.USD,
        opening_balance=money("0"),
        balance=money("0"),
        project_id=project.id,
    )
    db.add_all([vnd, usd])
    db.commit()
    ids = {
        "admin": admin.id,
        "member": member.id,
        "manager": manager.id,
        "project": project.id,
        "vnd": vnd.id,
        "usd": usd.id,
    }
    db.close()
    return ids


def _as(user_id: int) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


def teardown_function() -> None:
    app.dependency_overrides.clear()


def test_expense_approval_flow_over_http(tmp_path) -> None:
    client, factory = _client(tmp_path)
    ids = _seed(factory)

    created = client.post(
        "/api/v1/transactions",
        headers=_as(ids["member"]),
        json={
            "transaction_type": "OUT",
            "amount": "7000000",
            "currency": "VND",
            "account_id": ids["vnd"],
            "category": "Materials",
            "tx_date": "2026-03-02",
        },
    )
    assert created.status_code == 201
    body = created.json()
    assert body["transaction"]["status"] == "PENDING"
    assert body["warnings"] == ["requires_approval"]
    tx_id = body["transaction"]["id"]

    denied = client.post(f"/api/v1/transactions/{tx_id}/approve", headers=_as(ids["member"]))
    assert denied.status_code == 403
    assert denied.json()["code"] == "permission_denied"

    approved = client.post(f"/api/v1/transactions/{tx_id}/approve", headers=_as(ids["manager"]))
    assert approved.status_code == 200
    assert approved.json()["status"] == "APPROVED"

    again = client.post(f"/api/v1/transactions/{tx_id}/approve", headers=_as(ids["manager"]))
    assert again.status_code == 409
    assert again.json()["code"] == "invalid_state_transition"

    account = client.get(f"/api/v1/accounts/{ids['vnd']}", headers=_as(ids["manager"]))
    assert Decimal(account.json()["balance"]) == Decimal("3000000")


def test_validation_error_maps_to_400(tmp_path) -> None:
    client, factory = _client(tmp_path)
    ids = _seed(factory)

    response = client.post(
        "/api/v1/transactions",
        headers=_as(ids["admin"]),
        json={"transaction_type": "IN", "amount": "10", "currency": "USD", "account_id": ids["vnd"]},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_transfer_endpoint_is_admin_only(tmp_path) -> None:
    client, factory = _client(tmp_path)
    ids = _seed(factory)
    payload = {
        "from_account_id": ids["vnd"],
        "to_account_id": ids["usd"],
        "amount": "1000000",
        "manual_rate": "0.00004",
    }

    assert client.post("/api/v1/transfers", headers=_as(ids["manager"]), json=payload).status_code == 403

    response = client.post("/api/v1/transfers", headers=_as(ids["admin"]), json=payload)
    assert response.status_code == 201
    body = response.json()
    assert Decimal(body["received_amount"]) == Decimal("40")
    assert body["outgoing"]["reference"] == body["incoming"]["reference"] == body["reference"]

    too_much = client.post(
        "/api/v1/transfers",
        headers=_as(ids["admin"]),
        json={"from_account_id": ids["vnd"], "to_account_id": ids["usd"], "amount": "99999999"},
    )
    assert too_much.status_code == 409
    assert too_much.json()["code"] == "insufficient_balance"


def test_missing_user_header_falls_back_to_seeded_admin(tmp_path) -> None:
    client, factory = _client(tmp_path)
    _seed(factory)

    response = client.get("/api/v1/projects")

    assert response.status_code == 200
    assert [project["name"] for project in response.json()] == ["Fit-out"]
    assert client.get("/api/v1/projects", headers=_as(9999)).status_code == 401


def test_project_detail_exposes_caller_permissions(tmp_path) -> None:
    client, factory = _client(tmp_path)
    ids = _seed(factory)

    response = client.get(f"/api/v1/projects/{ids['project']}", headers=_as(ids["member"]))

    assert response.status_code == 200
    body = response.json()
    assert body["my_role"] == "MEMBER"
    assert body["my_permissions"] == ["view_transactions", "create_income", "create_expense"]


def test_role_change_resets_permissions_over_http(tmp_path) -> None:
    client, factory = _client(tmp_path)
    ids = _seed(factory)
    base = f"/api/v1/projects/{ids['project']}/members/{ids['member']}"

    toggled = client.post(
        f"{base}/permissions/toggle",
        headers=_as(ids["admin"]),
        json={"permission": "approve_transactions"},
    )
    assert "approve_transactions" in toggled.json()["permissions"]

    changed = client.put(f"{base}/role", headers=_as(ids["admin"]), json={"role": "VIEWER"})
    assert changed.status_code == 200
    assert changed.json()["permissions"] == ["view_transactions", "view_reports"]

    forbidden = client.put(f"{base}/role", headers=_as(ids["manager"]), json={"role": "OWNER"})
    assert forbidden.status_code == 403


def test_report_summary_modes(tmp_path) -> None:
    client, factory = _client(tmp_path)
    ids = _seed(factory)
    client.post(
        "/api/v1/transactions",
        headers=_as(ids["member"]),
        json={
            "transaction_type": "OUT",
            "amount": "2500000",
            "currency": "VND",
            "account_id": ids["vnd"],
            "category": "Rent",
            "tx_date": "2026-03-02",
        },
    )

    normalized = client.get("/api/v1/reports/summary", headers=_as(ids["admin"]))
    assert normalized.status_code == 200
    assert normalized.json()["mode"] == "normalized"
    assert normalized.json()["rates_fallback"] is False
    assert Decimal(normalized.json()["totals"]["expense"]) == Decimal("100")

    native = client.get("/api/v1/reports/summary", params={"currency": "VND"}, headers=_as(ids["admin"]))
    assert native.json()["mode"] == "native"
    assert Decimal(native.json()["totals"]["expense"]) == Decimal("2500000")

    # MEMBER holds no view_reports, so the project is outside their report scope.
    scoped = client.get(
        "/api/v1/reports/summary",
        params={"project_id": ids["project"]},
        headers=_as(ids["member"]),
    )
    assert scoped.status_code == 403


def test_attachment_upload_returns_url(tmp_path) -> None:
    client, factory = _client(tmp_path)
    ids = _seed(factory)

    response = client.post(
        "/api/v1/attachments",
        headers=_as(ids["member"]),
        files={"file": ("receipt.txt", b"paid in cash", "text/plain")},
    )

    assert response.status_code == 201
    assert response.json()["url"].startswith("/attachments/")
    assert response.json()["url"].endswith("-receipt.txt")


def test_sub_cent_and_oversize_amounts_are_rejected_at_the_boundary(tmp_path) -> None:
    client, factory = _client(tmp_path)
    ids = _seed(factory)

    for amount in ["0.004", "1e30"]:
        response = client.post(
            "/api/v1/transactions",
            headers=_as(ids["admin"]),
            json={"transaction_type": "IN", "amount": amount, "currency": "USD", "account_id": ids["usd"]},
        )
        assert response.status_code == 422

    transfer = client.post(
        "/api/v1/transfers",
        headers=_as(ids["admin"]),
        json={"from_account_id": ids["vnd"], "to_account_id": ids["usd"], "amount": "1000", "manual_rate": "0"},
    )
    assert transfer.status_code == 422

    account = client.get(f"/api/v1/accounts/{ids['usd']}", headers=_as(ids["admin"]))
    assert Decimal(account.json()["balance"]) == Decimal("0")
