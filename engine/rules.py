"""Year Zero Engine combat rules: dice pools, opposed attacks, damage."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING

from engine.dice import DicePool, apply_help_dice
from engine.events import record_event
from models.characters import (
    SKILL_ATTRIBUTES,
    Attribute,
    ItemType,
    RangeCategory,
    Skill,
    SkillExpertise,
    skill_name,
)
from models.encounter import GameMode

if TYPE_CHECKING:
    from models.characters import Character
    from models.encounter import Combatant, Encounter

logger = logging.getLogger(__name__)

# Which skill a weapon type helps when it names no skill of its own
WEAPON_SKILLS: dict[ItemType, Skill] = {
    ItemType.CLOSE: Skill.CLOSE_COMBAT,
    ItemType.RANGED: Skill.RANGED_COMBAT,
}

# Fixed NPC defence in solo play, by expertise
DEFENSE_DIFFICULTY: dict[SkillExpertise, int] = {
    SkillExpertise.NONE: 1,
    SkillExpertise.TRAINED: 1,
    SkillExpertise.EXPERT: 2,
    SkillExpertise.MASTER: 3,
}


def skill_attribute(skill: str) -> Attribute | None:
    """Look up the attribute governing a skill. Unknown skills have none."""
    return SKILL_ATTRIBUTES.get(skill)


def gear_bonus(character: Character, skill: str) -> int:
    """Sum the bonus of equipped, unbroken gear that helps with a skill.

    An item counts if it names the skill, or if it is a weapon naming no
    skill and the skill matches its type (Close -> Close Combat,
    Ranged -> Ranged Combat).
    """
    total = 0
    for item in character.inventory:
        if not item.equipped or item.broken or not item.bonus:
            continue
        if item.skill_affected is not None:
            if item.skill_affected == skill:
                total += item.bonus
        elif WEAPON_SKILLS.get(item.type) == skill:
            total += item.bonus
    return total


def talent_bonus(character: Character, skill: str) -> int:
    """Sum the bonus of active talents that affect a skill."""
    return sum(
        talent.bonus
        for talent in character.talents
        if talent.id in character.active_talent_ids and talent.skill_affected == skill
    )


def calculate_dice_pool(character: Character, skill: str, help_dice: int = 0) -> DicePool:
    """Derive base and stress dice for a character rolling a skill.

    base = attribute + skill rank + gear bonus + active talent bonus, then
    help/hurt dice (at most +3, never taking the pool below one die).
    Stress dice equal the character's current stress.

    Args:
        character: The character rolling.
        skill: Skill name. Unknown skills contribute no attribute dice.
        help_dice: Help (positive) or hurt (negative) dice.

    Returns:
        The DicePool to roll.
    """
    attribute = skill_attribute(skill)
    attribute_value = character.attributes.get(attribute.value, 0) if attribute else 0
    raw_base = (
        attribute_value
        + character.skills.get(skill_name(skill), 0)
        + gear_bonus(character, skill)
        + talent_bonus(character, skill)
    )
    base, _ = apply_help_dice(raw_base, help_dice)
    return DicePool(base_dice_pool=base, stress_dice_pool=max(0, character.stress))


def defense_difficulty(expertise: SkillExpertise) -> int:
    """Fixed defence successes for an NPC in solo play."""
    return DEFENSE_DIFFICULTY.get(expertise, 1)


def offense_skill(attacker: Combatant) -> Skill:
    """Close Combat at Short range, Ranged Combat otherwise."""
    if attacker.range == RangeCategory.SHORT:
        return Skill.CLOSE_COMBAT
    return Skill.RANGED_COMBAT


def defense_skill(defender: Combatant) -> Skill:
    """Close Combat at Short range, Mobility otherwise."""
    if defender.range == RangeCategory.SHORT:
        return Skill.CLOSE_COMBAT
    return Skill.MOBILITY


def apply_damage(encounter: Encounter, combatant: Combatant, damage: int) -> int:
    """Apply damage to a combatant and its record. Health never drops below 0.

    Args:
        encounter: Current encounter (mutated in place).
        combatant: The combatant taking damage.
        damage: Amount of damage to deal.

    Returns:
        The combatant's remaining health.
    """
    from engine.actors import actor_for

    if damage <= 0:
        return combatant.health
    new_health = max(0, combatant.health - damage)
    actor = actor_for(encounter, combatant)
    if actor is not None:
        actor.set_health(new_health)
    else:
        combatant.health = new_health
    if new_health == 0:
        logger.info("%s is broken", combatant.name)
        record_event(
            encounter, "broken", f"{combatant.name} is Broken!", actor_id=combatant.id,
        )
    return new_health


def heal(encounter: Encounter, combatant: Combatant, amount: int) -> int:
    """Restore health, capped at the combatant's max health.

    Returns:
        The amount actually healed.
    """
    from engine.actors import actor_for

    new_health = min(combatant.max_health, combatant.health + max(0, amount))
    healed = new_health - combatant.health
    actor = actor_for(encounter, combatant)
    if actor is not None:
        actor.set_health(new_health)
    else:
        combatant.health = new_health
    return healed


def resolve_opposed_attack(
    encounter: Encounter,
    attacker: Combatant,
    defender: Combatant,
    rng: random.Random | None = None,
) -> int:
    """Resolve an attack as an opposed roll and apply damage.

    The attacker rolls Close Combat at Short range, Ranged Combat otherwise;
    a ranged attack on a defender in cover loses one die. The defender rolls
    Close Combat at Short range, Mobility otherwise, except an NPC in solo
    play, which defends with a fixed difficulty.

    More attacker successes: weapon damage + (margin - 1) to the defender.
    Equal, non-zero successes: both hit each other for weapon damage.
    Anything else misses. A PC attacker that messes up may break its weapon.

    Args:
        encounter: Current encounter (mutated in place).
        attacker: The attacking combatant.
        defender: The defending combatant.
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        Damage applied to the defender.
    """
    from engine.actors import actor_for

    rng = rng or random.Random()

    if not attacker.is_alive or not defender.is_alive:
        record_event(
            encounter, "skipped",
            "Invalid or no target selected for attack.",
            actor_id=attacker.id,
        )
        return 0

    attacking = actor_for(encounter, attacker)
    defending = actor_for(encounter, defender)
    if attacking is None or defending is None:
        record_event(
            encounter, "skipped",
            f"{attacker.name} cannot attack {defender.name}: missing character record.",
            actor_id=attacker.id,
        )
        return 0

    skill = offense_skill(attacker)
    in_cover = skill == Skill.RANGED_COMBAT and defender.is_taking_cover
    if in_cover:
        record_event(
            encounter, "cover",
            f"{attacker.name}'s attack is hindered by {defender.name}'s cover (-1 dice)",
            actor_id=attacker.id,
        )
    attack_roll = attacking.roll(skill, help_dice=-1 if in_cover else 0, rng=rng)
    record_event(
        encounter, "roll", f"{attacker.name} rolls {skill.value}.",
        actor_id=attacker.id, roll=attack_roll,
    )

    guard = defense_skill(defender)
    solo = encounter.mode == GameMode.SOLO
    defender_successes, defense_roll = defending.defend(guard, solo=solo, rng=rng)
    if defense_roll is not None:
        record_event(
            encounter, "roll", f"{defender.name} rolls {guard.value}.",
            actor_id=defender.id, roll=defense_roll,
        )
    else:
        record_event(
            encounter, "difficulty",
            f"(Solo player-facing roll) {defender.name}'s defense difficulty is {defender_successes}.",
            actor_id=defender.id,
            difficulty=defender_successes,
        )

    damage = 0
    if attack_roll.successes > defender_successes:
        margin = attack_roll.successes - defender_successes
        damage = attacking.weapon_damage() + (margin - 1)
        apply_damage(encounter, defender, damage)
        record_event(
            encounter, "hit",
            f"{attacker.name} hits {defender.name} for {damage} damage!",
            actor_id=attacker.id,
            target_id=defender.id,
            damage=damage,
            target_health=defender.health,
        )
    elif attack_roll.successes == defender_successes and attack_roll.successes > 0:
        damage = attacking.weapon_damage()
        returned = defending.weapon_damage()
        apply_damage(encounter, defender, damage)
        apply_damage(encounter, attacker, returned)
        record_event(
            encounter, "exchange",
            f"{attacker.name} and {defender.name} hit each other simultaneously!",
            actor_id=attacker.id,
            target_id=defender.id,
            damage=damage,
            damage_taken=returned,
        )
    else:
        record_event(
            encounter, "miss",
            f"{attacker.name}'s attack is parried or misses!",
            actor_id=attacker.id,
            target_id=defender.id,
        )

    if attack_roll.messed_up:
        broken = attacking.on_messed_up(rng)
        if broken:
            record_event(
                encounter, "weapon_broken",
                f"Bad luck! {attacker.name}'s {broken} broke under the stress!",
                actor_id=attacker.id,
                item=broken,
            )

    attacker.has_acted = True
    logger.debug(
        "%s vs %s: %d vs %d successes, %d damage",
        attacker.name, defender.name, attack_roll.successes, defender_successes, damage,
    )
    return damage
