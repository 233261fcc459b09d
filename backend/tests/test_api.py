from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.api import checkout as checkout_api
from app.api.deps import access_security, get_db
from app.core.errors import InconsistentConfiguration
from app.main import app
from app.models.campaign import Campaign, CampaignScope
from app.models.values import RuleType

from conftest import link, rule


@pytest.fixture
def client(db):
    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user):
    token = access_security.create_access_token(subject={"id": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def live(make_campaign, make_discount):
    """Campaign and discount factories running around the real clock"""
    now = datetime.utcnow()

    def campaign(promotions, **fields):
        fields.setdefault("start_date", now - timedelta(days=1))
        fields.setdefault("end_date", now + timedelta(days=7))
        fields.setdefault("created_at", now - timedelta(days=2))
        return make_campaign(promotions, **fields)

    def discount(amount, **fields):
        fields.setdefault("start_date", now - timedelta(days=1))
        fields.setdefault("end_date", now + timedelta(days=7))
        return make_discount([rule(type=RuleType.FIXED_AMOUNT, value=Decimal(str(amount)))], **fields)

    return campaign, discount


ORDER = {"order": {"total": "60", "items": [{"service": "wash", "quantity": 2, "price": "30"}]}}


def test_health(client):
    assert client.get("/api/health").json()["status"] == "healthy"


def test_checkout_requires_auth(client):
    assert client.post("/api/checkout/preview", json=ORDER).status_code == 401


def test_preview_then_apply(client, db, shopper, live):
    make_campaign, make_discount = live
    campaign = make_campaign([link("DISCOUNT", make_discount(6).id)], name="Spring")
    campaign_id = campaign.id

    preview = client.post("/api/checkout/preview", json=ORDER, headers=auth(shopper))
    assert preview.status_code == 200
    body = preview.json()
    assert body["applied_campaign"]["id"] == campaign_id
    assert Decimal(body["total_discount"]) == Decimal("6")
    assert body["recorded"] is False

    applied = client.post("/api/checkout/apply", json={**ORDER, "order_ref": "ORD-9"}, headers=auth(shopper))
    assert applied.status_code == 200
    body = applied.json()
    assert body["recorded"] is True
    assert Decimal(body["final_amount"]) == Decimal("54")
    assert body["breakdown"][0]["type"] == "DISCOUNT"
    assert body["message"] == "Campaign Applied: Spring (Local Offer) - You saved 6.00"

    assert db.get(Campaign, campaign_id).used_count == 1

    # Per-user limit of one is now used up
    again = client.post("/api/checkout/apply", json=ORDER, headers=auth(shopper))
    assert again.json()["applied_campaign"] is None


def test_negative_total_is_rejected(client, shopper):
    response = client.post("/api/checkout/preview", json={"order": {"total": "-1"}}, headers=auth(shopper))
    assert response.status_code == 422


def test_foreign_tenancy_is_forbidden(client, shopper, other_tenancy):
    response = client.post(
        "/api/checkout/preview",
        json={**ORDER, "tenancy_id": other_tenancy.id},
        headers=auth(shopper),
    )
    assert response.status_code == 403


def test_misconfigured_campaign_is_left_out(client, shopper, live):
    make_campaign, make_discount = live
    make_campaign([link("WALLET_CREDIT", value="50")], scope=CampaignScope.GLOBAL, priority=100)
    valid = make_campaign([link("DISCOUNT", make_discount(4).id)], name="Valid")
    valid_id = valid.id

    response = client.post("/api/checkout/preview", json=ORDER, headers=auth(shopper))
    assert response.status_code == 200
    assert response.json()["applied_campaign"]["id"] == valid_id


def test_engine_errors_are_rendered(client, shopper, monkeypatch):
    def broken(*args, **kwargs):
        raise InconsistentConfiguration("Campaign 7 is misconfigured", campaign_id=7)

    monkeypatch.setattr(checkout_api, "preview", broken)
    response = client.post("/api/checkout/preview", json=ORDER, headers=auth(shopper))
    assert response.status_code == 500
    assert response.json()["error"] == "InconsistentConfiguration"
    assert response.json()["retryable"] is False


def test_active_campaigns_listing(client, tenancy, live):
    make_campaign, _ = live
    make_campaign([link("WALLET_CREDIT")], name="Quiet", priority=1)
    make_campaign([link("WALLET_CREDIT")], name="Loud", priority=8)

    response = client.get("/api/campaigns/active", params={"tenancy_id": tenancy.id})
    assert response.status_code == 200
    assert [c["name"] for c in response.json()] == ["Loud", "Quiet"]
    assert "promotions" not in response.json()[0]


def test_discount_endpoints(client, shopper, live):
    _, make_discount = live
    make_discount(5, name="Five", priority=2)
    make_discount(3, name="Three", priority=1, can_stack_with_other_discounts=True)

    active = client.get("/api/discounts/active", headers=auth(shopper))
    assert [d["name"] for d in active.json()] == ["Five", "Three"]
    assert active.json()[0]["type"] == "fixed_amount"

    applicable = client.post("/api/discounts/applicable", json=ORDER, headers=auth(shopper))
    body = applicable.json()
    assert [d["name"] for d in body["applicable_discounts"]] == ["Five", "Three"]
    assert Decimal(body["total_discount"]) == Decimal("8")
    assert Decimal(body["final_amount"]) == Decimal("52")
