from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.config import settings
from app.models.campaign import BudgetType, CampaignScope, CampaignStatus
from app.models.values import CampaignTrigger, PromotionKind, RuleType, TriggerType
from app.services.ledger import commit_usage
from app.services.selector import (
    collect_candidates,
    find_active_campaigns,
    rank_candidates,
    select_campaign,
)

from conftest import NOW, link, make_order, rule


@pytest.fixture
def fixed(make_discount):
    """Fixed-amount discounts keyed by amount"""
    def factory(amount, **fields):
        return make_discount([rule(type=RuleType.FIXED_AMOUNT, value=Decimal(str(amount)))], **fields)
    return factory


def select(db, tenancy, shopper, total="100", **kwargs):
    kwargs.setdefault("now", NOW)
    return select_campaign(db, tenancy.id, TriggerType.ORDER_CHECKOUT, shopper, make_order(total), **kwargs)


class TestFindActiveCampaigns:

    def test_tenant_and_covering_global(self, db, tenancy, other_tenancy, make_campaign, fixed):
        discount = fixed(5)
        own = make_campaign([link("DISCOUNT", discount.id)], name="Own")
        make_campaign([link("DISCOUNT", discount.id)], name="Foreign", tenancy_id=other_tenancy.id)
        everywhere = make_campaign([link("WALLET_CREDIT")], name="Everywhere",
                                   scope=CampaignScope.GLOBAL, all_tenancies=True)
        listed = make_campaign([link("WALLET_CREDIT")], name="Listed",
                               scope=CampaignScope.GLOBAL, applicable_tenancies=[tenancy.id])
        make_campaign([link("WALLET_CREDIT")], name="Elsewhere",
                      scope=CampaignScope.GLOBAL, applicable_tenancies=[other_tenancy.id])

        found = find_active_campaigns(db, tenancy.id, TriggerType.ORDER_CHECKOUT, NOW)
        assert {c.id for c in found} == {own.id, everywhere.id, listed.id}

    def test_filters_status_window_and_trigger(self, db, tenancy, make_campaign):
        make_campaign([link("WALLET_CREDIT")], status=CampaignStatus.DRAFT)
        make_campaign([link("WALLET_CREDIT")], end_date=NOW)
        make_campaign([link("WALLET_CREDIT")], start_date=NOW + timedelta(hours=1))
        make_campaign(
            [link("WALLET_CREDIT")],
            triggers=[CampaignTrigger(type=TriggerType.USER_REGISTRATION).model_dump(mode="json")],
        )
        assert find_active_campaigns(db, tenancy.id, TriggerType.ORDER_CHECKOUT, NOW) == []

    def test_templates_are_never_loaded(self, db, tenancy, make_campaign):
        make_campaign([link("WALLET_CREDIT")], scope=CampaignScope.TEMPLATE, all_tenancies=True)
        assert find_active_campaigns(db, tenancy.id, TriggerType.ORDER_CHECKOUT, NOW) == []


class TestRanking:

    def test_tenant_scope_beats_larger_global_benefit(self, db, tenancy, shopper, make_campaign, fixed):
        local = make_campaign([link("DISCOUNT", fixed(5).id)], name="Local")
        make_campaign([link("DISCOUNT", fixed(10, tenancy_id=None, is_global=True).id)],
                      name="Platform", scope=CampaignScope.GLOBAL, all_tenancies=True)

        best = select(db, tenancy, shopper)
        assert best.campaign.id == local.id
        assert best.result.total_discount == Decimal("5.00")

    def test_priority_within_scope(self, db, tenancy, shopper, make_campaign, fixed):
        make_campaign([link("DISCOUNT", fixed(20).id)], name="Big", priority=1)
        urgent = make_campaign([link("DISCOUNT", fixed(3).id)], name="Urgent", priority=9)
        assert select(db, tenancy, shopper).campaign.id == urgent.id

    def test_priority_before_scope_setting(self, db, tenancy, shopper, make_campaign, fixed, monkeypatch):
        local = make_campaign([link("DISCOUNT", fixed(5).id)], name="Local", priority=1)
        platform = make_campaign([link("WALLET_CREDIT", value="2")], name="Platform", priority=50,
                                 scope=CampaignScope.GLOBAL, all_tenancies=True)

        assert select(db, tenancy, shopper).campaign.id == local.id
        monkeypatch.setattr(settings, "CAMPAIGN_PRIORITY_BEFORE_SCOPE", True)
        assert select(db, tenancy, shopper).campaign.id == platform.id

    def test_benefit_breaks_priority_ties(self, db, tenancy, shopper, make_campaign, fixed):
        make_campaign([link("DISCOUNT", fixed(4).id)], name="Small")
        generous = make_campaign([link("DISCOUNT", fixed(6).id)], name="Generous")
        assert select(db, tenancy, shopper).campaign.id == generous.id

    def test_wallet_credit_counts_as_benefit(self, db, tenancy, shopper, make_campaign, fixed):
        make_campaign([link("DISCOUNT", fixed(4).id)], name="Discount")
        credit = make_campaign([link("WALLET_CREDIT", value="7")], name="Credit")
        best = select(db, tenancy, shopper)
        assert best.campaign.id == credit.id
        assert best.benefit == Decimal("7.00")
        assert best.result.total_discount == Decimal("0")

    def test_oldest_wins_full_tie_and_is_stable(self, db, tenancy, shopper, make_campaign, fixed):
        discount = fixed(5)
        newer = make_campaign([link("DISCOUNT", discount.id)], name="Newer", created_at=NOW - timedelta(hours=1))
        older = make_campaign([link("DISCOUNT", discount.id)], name="Older", created_at=NOW - timedelta(days=3))

        picks = {select(db, tenancy, shopper).campaign.id for _ in range(5)}
        assert picks == {older.id}
        assert newer.id != older.id

    def test_rank_is_independent_of_input_order(self, db, tenancy, shopper, make_campaign, fixed):
        for amount in (3, 8, 5):
            make_campaign([link("DISCOUNT", fixed(amount).id)], name=f"Off {amount}")
        candidates = collect_candidates(db, tenancy.id, TriggerType.ORDER_CHECKOUT, shopper,
                                        make_order("100"), now=NOW)
        forward = [c.campaign.id for c in rank_candidates(candidates)]
        backward = [c.campaign.id for c in rank_candidates(list(reversed(candidates)))]
        assert forward == backward
        assert [c.benefit for c in rank_candidates(candidates)] == [
            Decimal("8.00"), Decimal("5.00"), Decimal("3.00")
        ]


class TestSelection:

    def test_nothing_eligible(self, db, tenancy, shopper):
        assert select(db, tenancy, shopper) is None

    def test_ineligible_campaign_skipped(self, db, tenancy, shopper, make_campaign, fixed):
        make_campaign([link("DISCOUNT", fixed(9).id)], name="Newcomers",
                      audience={"target_type": "NEW_USERS"})
        fallback = make_campaign([link("DISCOUNT", fixed(2).id)], name="Everyone")
        assert select(db, tenancy, shopper).campaign.id == fallback.id

    def test_campaign_with_nothing_to_apply_is_skipped(self, db, tenancy, shopper, make_campaign, fixed):
        make_campaign([link("DISCOUNT", 999)], name="Dangling")
        assert select(db, tenancy, shopper) is None

    def test_excluded_campaigns(self, db, tenancy, shopper, make_campaign, fixed):
        best = make_campaign([link("DISCOUNT", fixed(9).id)], name="Best")
        second = make_campaign([link("DISCOUNT", fixed(2).id)], name="Second")
        assert select(db, tenancy, shopper, exclude_ids={best.id}).campaign.id == second.id

    def test_used_up_per_user_limit(self, db, tenancy, shopper, make_campaign, fixed):
        c = make_campaign([link("DISCOUNT", fixed(4).id)], per_user_limit=1)
        commit_usage(db, c.id, user_id=shopper.id, discount_amount=Decimal("4"),
                     order_total=Decimal("100"), now=NOW)
        assert select(db, tenancy, shopper) is None

    @pytest.mark.parametrize("fields", [
        {"scope": CampaignScope.GLOBAL},
        {"total_usage_limit": 5, "used_count": 8},
    ])
    def test_misconfigured_campaign_is_skipped(self, db, tenancy, shopper, make_campaign, fixed, fields, caplog):
        broken = make_campaign([link("WALLET_CREDIT", value="50")], name="Broken", priority=100, **fields)
        valid = make_campaign([link("DISCOUNT", fixed(4).id)], name="Valid", priority=90)

        assert select(db, tenancy, shopper).campaign.id == valid.id
        assert f"Skipping inconsistent campaign #{broken.id}" in caplog.text

    def test_budget_must_cover_the_discount(self, db, tenancy, shopper, make_campaign, fixed):
        make_campaign([link("DISCOUNT", fixed(9).id)], name="Almost spent",
                      budget_type=BudgetType.FIXED_AMOUNT, budget_total=Decimal("10"),
                      budget_spent=Decimal("9"))
        make_campaign([link("DISCOUNT", fixed(9).id)], name="Per-user cap",
                      budget_type=BudgetType.PER_USER, budget_total=Decimal("100"),
                      budget_per_user_limit=Decimal("5"))
        small = make_campaign([link("DISCOUNT", fixed(1).id)], name="Small",
                              budget_type=BudgetType.FIXED_AMOUNT, budget_total=Decimal("10"),
                              budget_spent=Decimal("9"))
        assert select(db, tenancy, shopper).campaign.id == small.id

    def test_linked_records_must_cover_the_tenancy(
        self, db, tenancy, other_tenancy, shopper, make_campaign, fixed, make_coupon
    ):
        foreign_discount = fixed(9, tenancy_id=other_tenancy.id)
        foreign_coupon = make_coupon("ELSEWHERE", tenancy_id=other_tenancy.id)
        make_campaign([link("DISCOUNT", foreign_discount.id), link("COUPON", foreign_coupon.id)],
                      name="Platform", scope=CampaignScope.GLOBAL, all_tenancies=True, priority=100)
        own = make_campaign([link("DISCOUNT", fixed(2).id)], name="Own")

        best = select(db, tenancy, shopper)
        assert best.campaign.id == own.id
        assert best.result.total_discount == Decimal("2.00")

    def test_selection_writes_nothing(self, db, tenancy, shopper, make_campaign, fixed):
        c = make_campaign([link("DISCOUNT", fixed(5).id)], total_usage_limit=10)
        select(db, tenancy, shopper)
        db.refresh(c)
        assert c.used_count == 0
        assert c.budget_spent == Decimal("0")

    def test_tenancy_timezone_drives_conditions(self, db, tenancy, shopper, make_campaign, make_discount):
        tenancy.timezone = "Asia/Tokyo"
        db.add(tenancy)
        db.commit()
        # 12:00 UTC is 21:00 in Tokyo
        evening = make_discount([rule(
            type=RuleType.CONDITIONAL, value=Decimal("10"),
            conditions={"time_of_day": {"start_time": "20:00", "end_time": "23:00"}},
        )])
        make_campaign([link(PromotionKind.DISCOUNT, evening.id)])
        best = select(db, tenancy, shopper)
        assert best is not None
        assert best.result.total_discount == Decimal("10.00")
