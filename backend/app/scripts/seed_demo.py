"""
Seed script: demo tenancy, shopper and campaigns if they do not exist
Run: python -m app.scripts.seed_demo
"""
from datetime import datetime, timedelta
from decimal import Decimal
from sqlmodel import Session, select
from app.db.session import engine, create_tables
from app.models.tenancy import Tenancy
from app.models.user import User
from app.models.campaign import Campaign, CampaignScope, CampaignStatus, BudgetType
from app.models.discount import Discount
from app.models.values import (
    CampaignTrigger,
    DiscountRule,
    DiscountTier,
    PromotionKind,
    PromotionLink,
    RuleType,
    TriggerType,
)

DEMO_TENANCY = "demo-laundry"


def seed_demo():
    """Create demo records unless the demo tenancy already exists"""
    now = datetime.utcnow()

    with Session(engine) as session:
        existing = session.exec(select(Tenancy).where(Tenancy.slug == DEMO_TENANCY)).first()
        if existing:
            print(f"Demo tenancy already exists: {existing.name}")
            return

        tenancy = Tenancy(name="Demo Laundry", slug=DEMO_TENANCY, timezone="UTC")
        session.add(tenancy)
        session.commit()
        session.refresh(tenancy)

        shopper = User(tenancy_id=tenancy.id, email="shopper@example.com", first_name="Demo")
        discount = Discount(
            tenancy_id=tenancy.id,
            name="Volume discount",
            rules=[DiscountRule(
                type=RuleType.TIERED,
                tiers=[
                    DiscountTier(min_value=Decimal("100"), discount_percentage=Decimal("10")),
                    DiscountTier(min_value=Decimal("50"), discount_percentage=Decimal("5")),
                ],
            ).model_dump(mode="json")],
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=90),
        )
        session.add(shopper)
        session.add(discount)
        session.commit()
        session.refresh(discount)

        campaigns = [
            Campaign(
                name="Welcome week",
                description="Tiered savings on every checkout",
                scope=CampaignScope.TENANT,
                tenancy_id=tenancy.id,
                status=CampaignStatus.ACTIVE,
                start_date=now - timedelta(days=1),
                end_date=now + timedelta(days=7),
                priority=10,
                triggers=[CampaignTrigger(type=TriggerType.ORDER_CHECKOUT).model_dump(mode="json")],
                promotions=[PromotionLink(
                    type=PromotionKind.DISCOUNT, promotion_id=discount.id
                ).model_dump(mode="json")],
                budget_type=BudgetType.FIXED_AMOUNT,
                budget_total=Decimal("500"),
            ),
            Campaign(
                name="Platform cashback",
                description="Wallet credit on any order",
                scope=CampaignScope.GLOBAL,
                all_tenancies=True,
                status=CampaignStatus.ACTIVE,
                start_date=now - timedelta(days=1),
                end_date=now + timedelta(days=30),
                triggers=[CampaignTrigger(type=TriggerType.ORDER_CHECKOUT).model_dump(mode="json")],
                promotions=[PromotionLink(type=PromotionKind.WALLET_CREDIT).model_dump(mode="json")],
            ),
        ]
        for campaign in campaigns:
            session.add(campaign)
        session.commit()
        print(f"Demo tenancy created: {tenancy.name} (#{tenancy.id})")


def main():
    print("Creating tables...")
    create_tables()
    print("Seeding demo data...")
    seed_demo()
    print("Done!")


if __name__ == "__main__":
    main()
