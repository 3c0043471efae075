"""Year Zero Engine dice: pools, skill checks, pushes and table rolls."""

from __future__ import annotations

import logging
import random

from pydantic import BaseModel

from config import COMPLICATION_FACE, MAX_HELP_DICE, SUCCESS_FACE
from models.characters import skill_name

logger = logging.getLogger(__name__)


class DicePool(BaseModel):
    """Number of base and stress dice to roll for a check."""
    base_dice_pool: int
    stress_dice_pool: int


class RollResult(BaseModel):
    """Result of a skill check or pushed re-roll."""
    base_dice: list[int]
    stress_dice: list[int]
    successes: int
    messed_up: bool
    pushed: bool = False
    skill: str
    base_dice_pool: int             # Effective pool size, help dice included
    stress_dice_pool: int
    help_dice_count: int = 0        # Help/hurt dice after clamping


class TableRollResult(BaseModel):
    """A keyed d6/d66/d666 roll for a lookup table."""
    table_name: str
    roll: str                       # e.g. "35" for a d66 of [3, 5]
    dice: list[int]

    @property
    def key(self) -> int:
        return int(self.roll)


class PushNotAllowed(ValueError):
    """Raised when a roll is not eligible to be pushed."""


def roll_dice(count: int, rng: random.Random | None = None) -> list[int]:
    """Roll `count` six-sided dice.

    Args:
        count: Number of dice. Zero or negative rolls nothing.
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        The individual faces, in roll order.
    """
    rng = rng or random.Random()
    if count <= 0:
        return []
    return [rng.randint(1, 6) for _ in range(count)]


def count_successes(dice: list[int]) -> int:
    """Count sixes."""
    return sum(1 for d in dice if d == SUCCESS_FACE)


def is_messed_up(stress_dice: list[int]) -> bool:
    """A complication is any 1 on a stress die. Base dice never count."""
    return COMPLICATION_FACE in stress_dice


def clamp_help_dice(base_dice_pool: int, help_dice: int) -> int:
    """Clamp help/hurt dice so help is at most +3 and the pool keeps one die.

    Args:
        base_dice_pool: Pool before help dice.
        help_dice: Requested help (positive) or hurt (negative) dice.

    Returns:
        The effective modifier, e.g. -3 for a pool of 4 with -5 requested.
    """
    return max(-base_dice_pool + 1, min(MAX_HELP_DICE, help_dice))


def apply_help_dice(base_dice_pool: int, help_dice: int) -> tuple[int, int]:
    """Apply help/hurt dice to a base pool.

    Returns:
        (final_base_pool, effective_modifier) tuple. The final pool is never
        below 1.
    """
    modifier = clamp_help_dice(base_dice_pool, help_dice)
    return max(1, base_dice_pool + modifier), modifier


def build_roll_result(
    base_dice: list[int],
    stress_dice: list[int],
    skill: str,
    pushed: bool = False,
    help_dice_count: int = 0,
    base_dice_pool: int | None = None,
    stress_dice_pool: int | None = None,
) -> RollResult:
    """Classify rolled faces into a RollResult.

    Successes are sixes on either kind of die; `messed_up` is decided by the
    stress dice alone.
    """
    return RollResult(
        base_dice=base_dice,
        stress_dice=stress_dice,
        successes=count_successes(base_dice) + count_successes(stress_dice),
        messed_up=is_messed_up(stress_dice),
        pushed=pushed,
        skill=skill_name(skill),
        base_dice_pool=len(base_dice) if base_dice_pool is None else base_dice_pool,
        stress_dice_pool=len(stress_dice) if stress_dice_pool is None else stress_dice_pool,
        help_dice_count=help_dice_count,
    )


def roll_skill_check(
    base_dice_pool: int,
    stress_dice_pool: int,
    skill: str,
    is_pushed: bool = False,
    help_dice_count: int = 0,
    rng: random.Random | None = None,
) -> RollResult:
    """Roll a skill check from raw pool sizes.

    Help/hurt dice are applied here with the same clamp as
    calculate_dice_pool, so callers may pass either a finished pool with
    `help_dice_count=0` or a raw pool plus a modifier.

    Args:
        base_dice_pool: Base dice before help dice.
        stress_dice_pool: Stress dice to roll.
        skill: The skill being tested (used for display only).
        is_pushed: Whether this is a pushed re-roll.
        help_dice_count: Help (positive) or hurt (negative) dice.
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        RollResult with both dice sequences preserved. Base dice are rolled
        before stress dice.
    """
    rng = rng or random.Random()
    final_base, modifier = apply_help_dice(max(0, base_dice_pool), help_dice_count)
    stress_dice_pool = max(0, stress_dice_pool)

    base_dice = roll_dice(final_base, rng)
    stress_dice = roll_dice(stress_dice_pool, rng)

    result = build_roll_result(
        base_dice,
        stress_dice,
        skill,
        pushed=is_pushed,
        help_dice_count=modifier,
        base_dice_pool=final_base,
        stress_dice_pool=stress_dice_pool,
    )
    logger.debug(
        "Rolled %s: base=%s stress=%s successes=%d messed_up=%s pushed=%s",
        skill, base_dice, stress_dice, result.successes, result.messed_up, is_pushed,
    )
    return result


def can_push(result: RollResult) -> tuple[bool, str]:
    """Check whether a roll may be pushed.

    Only a failed roll that hasn't messed up and hasn't already been pushed
    is eligible.

    Returns:
        (allowed, reason) tuple. The reason is empty when allowed.
    """
    if result.pushed:
        return False, "Roll has already been pushed"
    if result.successes > 0:
        return False, "Roll already succeeded"
    if result.messed_up:
        return False, "Roll messed up and cannot be pushed"
    return True, ""


def push_previous_roll(
    previous: RollResult,
    rng: random.Random | None = None,
) -> RollResult:
    """Push a failed roll: re-roll every die with one extra stress die.

    The base pool keeps its effective size (help dice are not applied a
    second time) and all dice are rolled fresh.

    Args:
        previous: The roll being pushed.
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        A new RollResult marked as pushed.

    Raises:
        PushNotAllowed: If the roll is not eligible (see can_push).
    """
    allowed, reason = can_push(previous)
    if not allowed:
        raise PushNotAllowed(reason)

    result = roll_skill_check(
        previous.base_dice_pool,
        previous.stress_dice_pool + 1,
        previous.skill,
        is_pushed=True,
        rng=rng,
    )
    return result.model_copy(update={"help_dice_count": previous.help_dice_count})


def success_chance(base_dice_pool: int, stress_dice_pool: int) -> tuple[int, int]:
    """Chance of at least one success, as whole percentages.

    Returns:
        (initial, pushed) tuple; pushed assumes one extra stress die.
    """
    total = max(0, base_dice_pool) + max(0, stress_dice_pool)
    initial = round((1 - (5 / 6) ** total) * 100)
    pushed = round((1 - (5 / 6) ** (total + 1)) * 100)
    return initial, pushed


def _roll_table(table_name: str, count: int, rng: random.Random | None) -> TableRollResult:
    dice = roll_dice(count, rng)
    return TableRollResult(
        table_name=table_name,
        roll="".join(str(d) for d in dice),
        dice=dice,
    )


def roll_d6(table_name: str, rng: random.Random | None = None) -> TableRollResult:
    """Roll a d6 for a table keyed 1-6."""
    return _roll_table(table_name, 1, rng)


def roll_d66(table_name: str, rng: random.Random | None = None) -> TableRollResult:
    """Roll a d66 (tens and ones) for a table keyed 11-66."""
    return _roll_table(table_name, 2, rng)


def roll_d666(table_name: str, rng: random.Random | None = None) -> TableRollResult:
    """Roll a d666 (hundreds, tens and ones) for a table keyed 111-666."""
    return _roll_table(table_name, 3, rng)
