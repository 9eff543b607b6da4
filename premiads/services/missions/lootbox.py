"""
Loot box draw.

``select_reward`` is pure: it takes the mission's reward pool and a random
source exposing ``random() -> float in [0, 1)`` (``random.Random`` or a test
stub) and returns the drawn reward.

Selection rules:
- no entry has a weight: uniform over the pool
- any entry has a weight: proportional to weight; entries without one count
  as weight 1, entries with weight <= 0 are never drawn
- empty pool (or no positive weight): nothing is drawn
"""
from typing import Optional, Protocol, Sequence

from premiads.models.missions.mission import LootBoxRewardOption, LootBoxRewardType
from premiads.models.missions.reward import LootBoxReward


class RandomSource(Protocol):
    def random(self) -> float: ...


DEFAULT_LABELS = {
    LootBoxRewardType.CREDIT_BONUS: "Credit bonus",
    LootBoxRewardType.RANDOM_BADGE: "Random badge",
    LootBoxRewardType.MULTIPLIER: "Points multiplier",
    LootBoxRewardType.LEVEL_UP: "Level up",
    LootBoxRewardType.DAILY_STREAK_BONUS: "Streak bonus",
    LootBoxRewardType.RAFFLE_TICKET: "Raffle ticket",
}


def _pick_uniform(pool: Sequence[LootBoxRewardOption], rng: RandomSource) -> LootBoxRewardOption:
    index = int(rng.random() * len(pool))
    return pool[min(index, len(pool) - 1)]


def _pick_weighted(pool: Sequence[LootBoxRewardOption], rng: RandomSource) -> Optional[LootBoxRewardOption]:
    weights = [1.0 if option.weight is None else max(option.weight, 0.0) for option in pool]
    total = sum(weights)
    if total <= 0:
        return None

    threshold = rng.random() * total
    cumulative = 0.0
    chosen = None
    for option, weight in zip(pool, weights):
        if weight <= 0:
            continue
        chosen = option
        cumulative += weight
        if threshold < cumulative:
            break
    return chosen


def select_reward(pool: Sequence[LootBoxRewardOption], rng: RandomSource) -> Optional[LootBoxReward]:
    """Draw one reward from ``pool`` using ``rng``"""
    if not pool:
        return None

    if all(option.weight is None for option in pool):
        chosen = _pick_uniform(pool, rng)
    else:
        chosen = _pick_weighted(pool, rng)

    if chosen is None:
        return None

    return LootBoxReward(
        type=chosen.type,
        amount=chosen.amount,
        label=chosen.label or DEFAULT_LABELS.get(chosen.type, chosen.type.value)
    )
