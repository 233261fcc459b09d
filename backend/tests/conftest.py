"""
Shared fixtures: an in-memory SQLite database per test plus small
factories for tenancies, shoppers, campaigns and promotion records.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, create_engine  # noqa: E402

from app.db.session import create_tables  # noqa: E402
from app.models.campaign import Campaign, CampaignScope, CampaignStatus  # noqa: E402
from app.models.coupon import Coupon, CouponType  # noqa: E402
from app.models.discount import Discount  # noqa: E402
from app.models.loyalty import LoyaltyProgram  # noqa: E402
from app.models.tenancy import Tenancy  # noqa: E402
from app.models.user import User  # noqa: E402
from app.models.values import (  # noqa: E402
    CampaignTrigger,
    DiscountRule,
    PromotionLink,
    TriggerType,
)
from app.schemas.checkout import OrderSnapshot  # noqa: E402

# Wednesday, 12:00 UTC
NOW = datetime(2026, 3, 4, 12, 0)


def make_order(total, items=None, services=None) -> OrderSnapshot:
    return OrderSnapshot(
        total=Decimal(str(total)),
        items=items or [],
        service_types=services or [],
    )


def link(kind, promotion_id=None, **overrides) -> dict:
    return PromotionLink(
        type=kind, promotion_id=promotion_id, overrides=overrides
    ).model_dump(mode="json")


def rule(**fields) -> dict:
    return DiscountRule(**fields).model_dump(mode="json")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def tenancy(db):
    tenancy = Tenancy(name="Laundry One", slug="laundry-one", timezone="UTC")
    db.add(tenancy)
    db.commit()
    db.refresh(tenancy)
    return tenancy


@pytest.fixture
def other_tenancy(db):
    tenancy = Tenancy(name="Laundry Two", slug="laundry-two", timezone="UTC")
    db.add(tenancy)
    db.commit()
    db.refresh(tenancy)
    return tenancy


@pytest.fixture
def make_user(db, tenancy):
    def factory(**fields):
        fields.setdefault("tenancy_id", tenancy.id)
        fields.setdefault("created_at", NOW - timedelta(days=365))
        user = User(**fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return factory


@pytest.fixture
def shopper(make_user):
    return make_user(email="shopper@example.com", order_count=3, total_spent=Decimal("120"))


@pytest.fixture
def make_discount(db, tenancy):
    def factory(rules, **fields):
        fields.setdefault("tenancy_id", tenancy.id)
        fields.setdefault("name", "Discount")
        fields.setdefault("start_date", NOW - timedelta(days=1))
        fields.setdefault("end_date", NOW + timedelta(days=30))
        discount = Discount(rules=rules, **fields)
        db.add(discount)
        db.commit()
        db.refresh(discount)
        return discount
    return factory


@pytest.fixture
def make_coupon(db, tenancy):
    def factory(code, **fields):
        fields.setdefault("tenancy_id", tenancy.id)
        fields.setdefault("name", code)
        fields.setdefault("type", CouponType.FIXED_AMOUNT)
        fields.setdefault("value", Decimal("5"))
        fields.setdefault("start_date", NOW - timedelta(days=1))
        fields.setdefault("end_date", NOW + timedelta(days=30))
        coupon = Coupon(code=code, **fields)
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon
    return factory


@pytest.fixture
def make_loyalty_program(db, tenancy):
    def factory(**fields):
        fields.setdefault("tenancy_id", tenancy.id)
        fields.setdefault("name", "Points")
        fields.setdefault("start_date", NOW - timedelta(days=1))
        program = LoyaltyProgram(**fields)
        db.add(program)
        db.commit()
        db.refresh(program)
        return program
    return factory


@pytest.fixture
def make_campaign(db, tenancy):
    """Active tenant campaign on ORDER_CHECKOUT unless told otherwise"""
    def factory(promotions, **fields):
        scope = fields.setdefault("scope", CampaignScope.TENANT)
        if scope == CampaignScope.TENANT:
            fields.setdefault("tenancy_id", tenancy.id)
        fields.setdefault("name", "Campaign")
        fields.setdefault("status", CampaignStatus.ACTIVE)
        fields.setdefault("start_date", NOW - timedelta(days=1))
        fields.setdefault("end_date", NOW + timedelta(days=7))
        fields.setdefault(
            "triggers",
            [CampaignTrigger(type=TriggerType.ORDER_CHECKOUT).model_dump(mode="json")],
        )
        fields.setdefault("created_at", NOW - timedelta(days=2))
        campaign = Campaign(promotions=promotions, **fields)
        db.add(campaign)
        db.commit()
        db.refresh(campaign)
        return campaign
    return factory
