import asyncio
import pytest
from bson import ObjectId

from premiads.models.missions.mission import Mission, LootBoxRewardOption, LootBoxRewardType
from premiads.models.missions.reward import GrantStatus
from premiads.models.missions.submission import ModerationDecision, ReviewStage, SubmissionStatus
from premiads.services.missions.lootbox import select_reward
from premiads.services.missions.moderation import ModerationService
from premiads.services.missions.rewards import RewardIssuer
from premiads.services.missions.submission import SubmissionService


def _pool(*entries):
    return [LootBoxRewardOption(**entry) for entry in entries]


async def _setup(db, make_mission, caller, **mission_overrides):
    mission_id = await make_mission(**mission_overrides)
    submission = await SubmissionService(db).submit(caller, mission_id)
    mission = Mission.from_document(await db.missions.find_one({"_id": ObjectId(mission_id)}))
    return submission, mission


class TestSelectReward:

    def test_empty_pool(self, fixed_random):
        assert select_reward([], fixed_random(0.5)) is None

    def test_uniform_without_weights(self, fixed_random):
        pool = _pool({"type": "raffle_ticket"}, {"type": "credit_bonus"}, {"type": "multiplier"})

        assert select_reward(pool, fixed_random(0.0)).type == LootBoxRewardType.RAFFLE_TICKET
        assert select_reward(pool, fixed_random(0.4)).type == LootBoxRewardType.CREDIT_BONUS
        assert select_reward(pool, fixed_random(0.999)).type == LootBoxRewardType.MULTIPLIER

    def test_weighted(self, fixed_random):
        pool = _pool(
            {"type": "credit_bonus", "weight": 1},
            {"type": "raffle_ticket", "weight": 3},
        )

        # Cumulative weights: credit_bonus [0, 1), raffle_ticket [1, 4)
        assert select_reward(pool, fixed_random(0.2)).type == LootBoxRewardType.CREDIT_BONUS
        assert select_reward(pool, fixed_random(0.5)).type == LootBoxRewardType.RAFFLE_TICKET
        assert select_reward(pool, fixed_random(0.99)).type == LootBoxRewardType.RAFFLE_TICKET

    def test_missing_weight_counts_as_one(self, fixed_random):
        pool = _pool({"type": "credit_bonus", "weight": 2}, {"type": "level_up"})

        assert select_reward(pool, fixed_random(0.6)).type == LootBoxRewardType.CREDIT_BONUS
        assert select_reward(pool, fixed_random(0.7)).type == LootBoxRewardType.LEVEL_UP

    def test_non_positive_weight_never_drawn(self, fixed_random):
        pool = _pool(
            {"type": "multiplier", "weight": 0},
            {"type": "raffle_ticket", "weight": 1},
            {"type": "level_up", "weight": -5},
        )

        for value in (0.0, 0.5, 0.999):
            assert select_reward(pool, fixed_random(value)).type == LootBoxRewardType.RAFFLE_TICKET

    def test_no_positive_weight(self, fixed_random):
        pool = _pool({"type": "multiplier", "weight": 0})
        assert select_reward(pool, fixed_random(0.5)) is None

    def test_labels_and_amounts(self, fixed_random):
        pool = _pool({"type": "raffle_ticket", "amount": 3}, {"type": "credit_bonus", "label": "R$5 bonus"})

        first = select_reward(pool, fixed_random(0.0))
        second = select_reward(pool, fixed_random(0.9))

        assert first.amount == 3
        assert first.label == "Raffle ticket"
        assert second.amount == 1
        assert second.label == "R$5 bonus"

    def test_bare_type_names_in_mission(self, fixed_random):
        mission = Mission(id="m1", selected_lootbox_rewards=["daily_streak_bonus", "multiplier"])
        drawn = select_reward(mission.selected_lootbox_rewards, fixed_random(0.9))
        assert drawn.type == LootBoxRewardType.MULTIPLIER

    def test_unknown_reward_types_are_skipped(self, fixed_random):
        mission = Mission(
            id="m1",
            selected_lootbox_rewards=["mystery_prize", {"type": "gold", "amount": 5}, {"type": "raffle_ticket", "amount": 2}],
        )
        assert [entry.type for entry in mission.selected_lootbox_rewards] == [LootBoxRewardType.RAFFLE_TICKET]
        assert select_reward(mission.selected_lootbox_rewards, fixed_random(0.0)).amount == 2


@pytest.mark.asyncio
async def test_issue_full_grant(db, make_mission, participant, fixed_random):
    submission, mission = await _setup(
        db, make_mission, participant,
        rifas=15, cashback_reward=2.5,
        has_badge=True, badge_name="Reviewer", badge_image_url="https://cdn.example.com/b.png",
        has_lootbox=True, selected_lootbox_rewards=[{"type": "raffle_ticket", "amount": 3}],
    )

    grant = await RewardIssuer(db, rng=fixed_random(0.5)).issue_rewards(submission, mission)

    assert grant.status == GrantStatus.ISSUED
    assert grant.points_earned == 15
    assert grant.cashback_earned == 2.5
    assert grant.badge_earned is True
    assert grant.badge_name == "Reviewer"
    assert grant.loot_box_reward.type == LootBoxRewardType.RAFFLE_TICKET
    assert grant.rewarded_at is not None

    wallet = await db.wallets.find_one({"user_id": participant.user_id})
    assert wallet["rifas"] == 15
    assert wallet["cashback_balance"] == 2.5
    assert wallet["total_rifas_earned"] == 15

    badges = await db.user_badges.find({"user_id": participant.user_id}).to_list(length=None)
    assert [b["badge_name"] for b in badges] == ["Reviewer"]

    boxes = await db.loot_box_rewards.find({"user_id": participant.user_id}).to_list(length=None)
    assert len(boxes) == 1
    assert boxes[0]["is_claimed"] is False
    assert boxes[0]["reward_amount"] == 3

    kinds = sorted(row["kind"] for row in await db.reward_transactions.find({"grant_id": grant.id}).to_list(length=None))
    assert kinds == ["cashback", "loot_box", "rifas"]


@pytest.mark.asyncio
async def test_issue_without_optional_rewards(db, make_mission, participant):
    submission, mission = await _setup(db, make_mission, participant, rifas=5)

    grant = await RewardIssuer(db).issue_rewards(submission, mission)

    assert grant.badge_earned is False
    assert grant.loot_box_reward is None
    assert await db.user_badges.count_documents({}) == 0
    assert await db.loot_box_rewards.count_documents({}) == 0


@pytest.mark.asyncio
async def test_lootbox_with_empty_pool_draws_nothing(db, make_mission, participant):
    submission, mission = await _setup(db, make_mission, participant, has_lootbox=True, selected_lootbox_rewards=[])

    grant = await RewardIssuer(db).issue_rewards(submission, mission)

    assert grant.loot_box_reward is None
    assert await db.loot_box_rewards.count_documents({}) == 0


@pytest.mark.asyncio
async def test_mission_with_unknown_loot_box_entry_is_approved(db, make_mission, participant, advertiser, fixed_random):
    mission_id = await make_mission(
        has_lootbox=True,
        selected_lootbox_rewards=["mystery_prize", {"type": "raffle_ticket", "amount": 2}],
    )
    submission = await SubmissionService(db).submit(participant, mission_id)
    service = ModerationService(db, issuer=RewardIssuer(db, rng=fixed_random(0.9)))

    result = await service.decide(advertiser, submission.id, ModerationDecision.APPROVE, ReviewStage.FIRST_REVIEW)

    assert result.submission.status == SubmissionStatus.APPROVED
    assert result.reward_grant.loot_box_reward.type == LootBoxRewardType.RAFFLE_TICKET
    assert await db.loot_box_rewards.count_documents({"user_id": participant.user_id}) == 1


@pytest.mark.asyncio
async def test_issue_is_idempotent(db, make_mission, participant):
    submission, mission = await _setup(db, make_mission, participant, rifas=10, cashback_reward=1.0)
    issuer = RewardIssuer(db)

    first = await issuer.issue_rewards(submission, mission)
    second = await issuer.issue_rewards(submission, mission)

    assert first.id == second.id
    assert first.rewarded_at == second.rewarded_at
    wallet = await db.wallets.find_one({"user_id": participant.user_id})
    assert wallet["rifas"] == 10
    assert wallet["cashback_balance"] == 1.0
    assert await db.reward_transactions.count_documents({}) == 2


@pytest.mark.asyncio
async def test_concurrent_issue_is_idempotent(db, make_mission, participant):
    submission, mission = await _setup(db, make_mission, participant, rifas=10)
    issuer = RewardIssuer(db)

    grants = await asyncio.gather(*(issuer.issue_rewards(submission, mission) for _ in range(3)))

    assert len({grant.id for grant in grants}) == 1
    assert await db.mission_rewards.count_documents({}) == 1
    wallet = await db.wallets.find_one({"user_id": participant.user_id})
    assert wallet["rifas"] == 10


@pytest.mark.asyncio
async def test_resumes_partially_applied_grant(db, make_mission, participant):
    """A grant whose increment landed before a crash is finished without a second increment"""
    submission, mission = await _setup(db, make_mission, participant, rifas=10)
    issuer = RewardIssuer(db)
    doc = issuer._build_grant(submission, mission)
    await db.mission_rewards.insert_one(doc)
    assert await issuer.wallet_utils.apply_increment(participant.user_id, str(doc["_id"]), rifas=10)

    grant = await issuer.issue_rewards(submission, mission)

    assert grant.id == str(doc["_id"])
    assert grant.status == GrantStatus.ISSUED
    wallet = await db.wallets.find_one({"user_id": participant.user_id})
    assert wallet["rifas"] == 10


@pytest.mark.asyncio
async def test_concurrent_grants_for_one_user_all_land(db, make_mission, participant):
    pairs = [await _setup(db, make_mission, participant, title=f"Mission {i}", rifas=10) for i in range(5)]
    issuer = RewardIssuer(db)

    await asyncio.gather(*(issuer.issue_rewards(submission, mission) for submission, mission in pairs))

    wallet = await db.wallets.find_one({"user_id": participant.user_id})
    assert wallet["rifas"] == 50
    assert len(wallet["applied_grants"]) == 5


@pytest.mark.asyncio
async def test_wallet_keeps_only_recent_increment_keys(db, make_mission, participant):
    pairs = [await _setup(db, make_mission, participant, title=f"Mission {i}", rifas=10) for i in range(5)]
    issuer = RewardIssuer(db)
    issuer.wallet_utils.applied_keys_limit = 3

    grants = [await issuer.issue_rewards(submission, mission) for submission, mission in pairs]

    wallet = await db.wallets.find_one({"user_id": participant.user_id})
    assert wallet["rifas"] == 50
    assert wallet["applied_grants"] == [grant.id for grant in grants[-3:]]
    assert await issuer.wallet_utils.apply_increment(participant.user_id, grants[-1].id, rifas=10) is False

    # Issued grants are returned as-is, even once their key is gone
    await issuer.issue_rewards(*pairs[0])
    wallet = await db.wallets.find_one({"user_id": participant.user_id})
    assert wallet["rifas"] == 50


@pytest.mark.asyncio
async def test_badge_is_held_once_per_mission(db, make_mission, participant):
    submission, mission = await _setup(db, make_mission, participant, has_badge=True)
    issuer = RewardIssuer(db)
    await issuer.issue_rewards(submission, mission)

    # A second grant for the same mission (e.g. a resubmission) does not duplicate the badge
    resubmission = submission.model_copy(update={"id": str(ObjectId())})
    await issuer.issue_rewards(resubmission, mission)

    assert await db.user_badges.count_documents({"user_id": participant.user_id}) == 1


@pytest.mark.asyncio
async def test_revoke_undoes_grant(db, make_mission, participant):
    submission, mission = await _setup(
        db, make_mission, participant,
        rifas=10, has_badge=True, has_lootbox=True, selected_lootbox_rewards=["raffle_ticket"],
    )
    issuer = RewardIssuer(db)
    doc = issuer._build_grant(submission, mission)
    await db.mission_rewards.insert_one(doc)
    await issuer._apply(doc)
    # Not yet marked issued when the failure hit
    await db.mission_rewards.update_one({"_id": doc["_id"]}, {"$set": {"status": GrantStatus.ISSUING.value}})

    await issuer.revoke(doc)

    assert await db.mission_rewards.count_documents({}) == 0
    assert await db.user_badges.count_documents({}) == 0
    assert await db.loot_box_rewards.count_documents({}) == 0
    assert await db.reward_transactions.count_documents({}) == 0
    wallet = await db.wallets.find_one({"user_id": participant.user_id})
    assert wallet["rifas"] == 0
    assert wallet["applied_grants"] == []
