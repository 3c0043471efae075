"""Swarm combat: group rolls against a walker swarm's threat track."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING

from config import MAX_SWARM_SIZE, MAX_THREAT_LEVEL, SWARM_DEFEAT_SIZE
from engine.actors import actor_for
from engine.brawl import build_combatants
from engine.dice import roll_d6, roll_d66
from engine.events import record_event
from engine.rules import apply_damage
from models.characters import Skill, skill_name
from models.encounter import (
    CombatType,
    EncounterStatus,
    GameMode,
    SwarmAttack,
    SwarmConsequence,
    SwarmEncounterState,
    SwarmRoundResult,
)

if TYPE_CHECKING:
    from models.commands import Participant
    from models.encounter import Combatant, Encounter

logger = logging.getLogger(__name__)


# Rolls that lose a step against a block
BLOCKED_SKILLS = {Skill.MOBILITY.value, Skill.STEALTH.value}

# Solo "Swarm Loss" d6
LOSS_TABLE: dict[int, SwarmConsequence] = {
    1: SwarmConsequence.RAISE_THREAT,
    2: SwarmConsequence.RAISE_THREAT,
    3: SwarmConsequence.RAISE_THREAT,
    4: SwarmConsequence.RAISE_SIZE,
    5: SwarmConsequence.RAISE_SIZE,
    6: SwarmConsequence.SWARM_ATTACK,
}

# Solo "Swarm Attack" d6
ATTACK_TABLE: dict[int, SwarmAttack] = {
    1: SwarmAttack.SINGLE,
    2: SwarmAttack.SINGLE,
    3: SwarmAttack.SINGLE,
    4: SwarmAttack.BLOCK,
    5: SwarmAttack.BLOCK,
    6: SwarmAttack.MASS,
}

# Threat level -> attacks the swarm can make
THREAT_ATTACKS: dict[int, list[SwarmAttack]] = {
    3: [SwarmAttack.SINGLE, SwarmAttack.BLOCK],
    4: [SwarmAttack.SINGLE, SwarmAttack.BLOCK],
    5: [SwarmAttack.SINGLE, SwarmAttack.BLOCK],
    6: [SwarmAttack.MASS],
}

# d66 -> (damage, stress, lethal, text). Damage None means the victim's own weapon.
WALKER_ATTACK_TABLE: dict[int, tuple[int | None, int, bool, str]] = {
    11: (0, 1, False, "You get away, shaken."),
    12: (0, 1, False, "You hold it off, but it drools all over your face."),
    13: (0, 1, False, "Cornered, you somehow survive."),
    14: (0, 0, False, "You kill it, but lose something important."),
    15: (0, 1, False, "You pin it and crush its head with a stone."),
    16: (1, 0, False, "It tears at your hair before you beat it down."),
    21: (1, 0, False, "It headbutts you to the floor before you kill it."),
    22: (1, 0, False, "You crack your head on the ground as it falls on you."),
    23: (1, 0, False, "You cut yourself on something sharp in the struggle."),
    24: (0, 0, False, "You leap clear of them."),
    25: (0, 0, False, "They pile on top of you, but you avoid the bite."),
    26: (0, 0, False, "It chases you, and you barely keep your footing."),
    31: (0, 0, False, "It grabs your head, but you keep its teeth away."),
    32: (2, 0, False, "You elbow it until the skull gives. Your arm is a mess."),
    33: (None, 0, False, "You kill it and hit yourself with your own weapon."),
    34: (1, 1, False, "A long fight on the ground, but it finally stops moving."),
    35: (2, 0, False, "It tears off an ear."),
    36: (2, 0, False, "Two walkers pull you in opposite directions."),
    41: (2, 0, False, "It stabs you with something wedged in its hand."),
    42: (2, 0, False, "It drives you back into something sharp."),
    43: (3, 0, False, "It slams your head against the ground."),
    44: (3, 0, False, "It breaks your arm."),
    45: (3, 0, False, "It bites into your knee."),
    46: (2, 0, False, "It bites both of your earlobes."),
    51: (2, 0, False, "Just a scratch, but it will fester."),
    52: (2, 0, False, "It bites one of your toes."),
    53: (2, 0, False, "It bites off a finger."),
    54: (0, 0, False, "A shallow bite to the stomach. The fever will come."),
    55: (0, 0, True, "Bitten in the throat."),
    56: (0, 0, True, "They bite you in the back, again and again."),
    61: (0, 0, True, "A stray blow to the head ends it."),
    62: (0, 0, True, "A second walker takes your calf."),
    63: (0, 0, True, "One you missed bites into your back."),
    64: (0, 0, True, "They drag you to the ground."),
    65: (0, 0, True, "It goes for your face."),
    66: (0, 0, True, "You are overwhelmed."),
}


def start_swarm(
    encounter: Encounter,
    participants: list[Participant],
    threat_level: int,
    swarm_size: int,
) -> Encounter:
    """Begin a fight against a walker swarm.

    Args:
        encounter: Current encounter (mutated in place).
        participants: Survivors facing the swarm.
        threat_level: Starting threat level, 0-6.
        swarm_size: Starting swarm size, 1-6.

    Returns:
        Updated encounter.

    Raises:
        ValueError: If combat is already running, the threat track is out of
            range, or nobody valid joins.
    """
    if encounter.status == EncounterStatus.ACTIVE:
        raise ValueError("Combat is already in progress")
    if not 0 <= threat_level <= MAX_THREAT_LEVEL:
        raise ValueError(f"Threat level must be between 0 and {MAX_THREAT_LEVEL}")
    if not 1 <= swarm_size <= MAX_SWARM_SIZE:
        raise ValueError(f"Swarm size must be between 1 and {MAX_SWARM_SIZE}")

    encounter.swarm = SwarmEncounterState(
        threat_level=threat_level,
        swarm_size=swarm_size,
        combatants=build_combatants(encounter, participants),
    )
    encounter.brawl = None
    encounter.combat_type = CombatType.SWARM
    encounter.status = EncounterStatus.ACTIVE
    record_event(
        encounter, "combat_start",
        f"A swarm closes in! Threat {threat_level}, size {swarm_size}: "
        f"{encounter.swarm.needed_successes} successes needed.",
    )
    return encounter


def select_swarm_skill(encounter: Encounter, combatant_id: str, skill: str | None) -> bool:
    """Choose (or clear) the skill a combatant rolls this swarm round."""
    swarm = encounter.swarm
    if swarm is None:
        record_event(encounter, "rejected", "No swarm combat is in progress.")
        return False
    combatant = swarm.get(combatant_id)
    if combatant is None:
        record_event(encounter, "rejected", f"Combatant '{combatant_id}' not found.")
        return False
    if skill is not None and not combatant.is_alive:
        record_event(
            encounter, "rejected", f"{combatant.name} is Broken and cannot act.",
            actor_id=combatant.id,
        )
        return False
    combatant.selected_swarm_skill = skill
    return True


def resolve_swarm_round(encounter: Encounter, rng: random.Random | None = None) -> SwarmRoundResult | None:
    """Roll every chosen skill and compare the total to the swarm threat.

    Each live combatant with a selected skill rolls it. While a block is
    active, Mobility and Stealth rolls count one success less. The total is
    compared with threat level + swarm size:

    - Win at swarm size 3 or less: the swarm is destroyed and combat ends.
    - Win above that: the swarm shrinks by one.
    - Loss: a consequence is pending and must be applied before the next round.

    Anyone whose roll messed up suffers a walker attack either way.

    Args:
        encounter: Current encounter (mutated in place).
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        The round result, or None if the round was refused.
    """
    rng = rng or random.Random()
    swarm = encounter.swarm
    if swarm is None or encounter.status != EncounterStatus.ACTIVE:
        record_event(encounter, "rejected", "No swarm combat is in progress.")
        return None
    if swarm.pending_consequence:
        record_event(
            encounter, "rejected",
            "The last round was lost. Apply its consequence before rolling again.",
        )
        return None

    acting = [c for c in swarm.combatants if c.is_alive and c.selected_swarm_skill]
    if not acting:
        record_event(encounter, "rejected", "No one has chosen a skill for this round.")
        return None

    total = 0
    messed_up: list[Combatant] = []
    for combatant in acting:
        actor = actor_for(encounter, combatant)
        if actor is None:
            record_event(
                encounter, "skipped",
                f"No character record for {combatant.name}; nothing happens.",
                actor_id=combatant.id,
            )
            continue
        skill = combatant.selected_swarm_skill
        result = actor.roll(skill, rng=rng)
        successes = result.successes
        record_event(
            encounter, "roll", f"{combatant.name} rolls {skill_name(skill)} against the swarm.",
            actor_id=combatant.id, roll=result,
        )
        if swarm.block_active and skill_name(skill) in BLOCKED_SKILLS and successes > 0:
            successes -= 1
            record_event(
                encounter, "blocked",
                f"The walkers block the way: {combatant.name} loses a success.",
                actor_id=combatant.id,
            )
        total += successes
        if result.messed_up:
            messed_up.append(combatant)

    needed = swarm.needed_successes
    is_win = total >= needed
    result = SwarmRoundResult(
        round=swarm.round,
        successes=total,
        needed=needed,
        is_win=is_win,
        almost=not is_win and total >= needed / 2,
        messed_up_ids=[c.id for c in messed_up],
    )
    swarm.block_active = False

    if is_win:
        if swarm.swarm_size <= SWARM_DEFEAT_SIZE:
            result.swarm_defeated = True
            record_event(
                encounter, "swarm_win",
                f"Success! {total} of {needed} successes. The swarm is destroyed!",
                successes=total, needed=needed,
            )
        else:
            swarm.swarm_size -= 1
            record_event(
                encounter, "swarm_win",
                f"Success! {total} of {needed} successes. The swarm shrinks to size {swarm.swarm_size}.",
                successes=total, needed=needed,
            )
    else:
        swarm.pending_consequence = True
        closeness = " So close!" if result.almost else ""
        record_event(
            encounter, "swarm_loss",
            f"Failure. {total} of {needed} successes.{closeness} The swarm presses in.",
            successes=total, needed=needed, almost=result.almost,
        )

    for combatant in messed_up:
        record_event(
            encounter, "messed_up",
            f"{combatant.name} messed up and draws a walker's attention!",
            actor_id=combatant.id,
        )
        actor = actor_for(encounter, combatant)
        broken = actor.on_messed_up(rng)
        if broken:
            record_event(
                encounter, "weapon_broken",
                f"Bad luck! {combatant.name}'s {broken} broke under the stress!",
                actor_id=combatant.id, item=broken,
            )
        resolve_walker_attack(encounter, combatant, rng)

    for combatant in swarm.combatants:
        combatant.selected_swarm_skill = None
    swarm.last_result = result
    logger.debug(
        "Swarm round %d: %d/%d win=%s defeated=%s",
        swarm.round, total, needed, is_win, result.swarm_defeated,
    )

    if result.swarm_defeated:
        swarm.swarm_size = 0
        encounter.status = EncounterStatus.COMPLETED
        logger.info("Swarm destroyed after %d rounds", swarm.round)
    else:
        swarm.round += 1
    return result


def apply_swarm_consequence(
    encounter: Encounter,
    choice: SwarmConsequence | None = None,
    rng: random.Random | None = None,
) -> SwarmConsequence | None:
    """Apply the consequence of a lost swarm round.

    The caller may choose one. Otherwise, and always in solo play, it is
    rolled on a d6: 1-3 raise threat, 4-5 raise swarm size, 6 swarm attack.

    Returns:
        The consequence applied, or None if nothing was pending.
    """
    rng = rng or random.Random()
    swarm = encounter.swarm
    if swarm is None or not swarm.pending_consequence:
        record_event(encounter, "rejected", "There is no swarm consequence to apply.")
        return None

    if choice is None or encounter.mode == GameMode.SOLO:
        roll = roll_d6("Swarm Loss", rng=rng)
        choice = LOSS_TABLE[roll.key]
        record_event(
            encounter, "table_roll", f"Swarm Loss roll: {roll.roll} ({choice.value})",
            table=roll.table_name, result=roll.roll,
        )

    if choice == SwarmConsequence.RAISE_THREAT:
        swarm.threat_level = min(MAX_THREAT_LEVEL, swarm.threat_level + 1)
        record_event(
            encounter, "threat", f"The noise draws more attention. Threat level is now {swarm.threat_level}.",
        )
    elif choice == SwarmConsequence.RAISE_SIZE:
        swarm.swarm_size = min(MAX_SWARM_SIZE, swarm.swarm_size + 1)
        record_event(
            encounter, "swarm_size", f"More walkers join. Swarm size is now {swarm.swarm_size}.",
        )
    else:
        swarm_attack(encounter, rng)

    swarm.pending_consequence = False
    return choice


def pick_swarm_attack(encounter: Encounter, rng: random.Random) -> SwarmAttack:
    """Solo play rolls the attack on a d6; other modes pick one the threat level allows."""
    if encounter.mode == GameMode.SOLO:
        roll = roll_d6("Swarm Attack", rng=rng)
        return ATTACK_TABLE[roll.key]
    allowed = THREAT_ATTACKS.get(encounter.swarm.threat_level, [SwarmAttack.SINGLE])
    return rng.choice(allowed)


def swarm_attack(encounter: Encounter, rng: random.Random | None = None) -> SwarmAttack:
    """The swarm lashes out: a single attack, a block, or a mass attack."""
    rng = rng or random.Random()
    swarm = encounter.swarm
    attack = pick_swarm_attack(encounter, rng)
    record_event(encounter, "swarm_attack", f"The swarm attacks! ({attack.value})")

    alive = [c for c in swarm.combatants if c.is_alive]
    if attack == SwarmAttack.BLOCK:
        swarm.block_active = True
        record_event(
            encounter, "block",
            "The walkers cut off the escape. Mobility and Stealth need an extra success next round.",
        )
    elif attack == SwarmAttack.MASS:
        for combatant in alive:
            resolve_walker_attack(encounter, combatant, rng)
    elif alive:
        resolve_walker_attack(encounter, rng.choice(alive), rng)
    return attack


def resolve_walker_attack(
    encounter: Encounter,
    combatant: Combatant,
    rng: random.Random | None = None,
) -> int | None:
    """One walker attacks one combatant.

    The victim rolls Mobility to dodge. On a failure a d66 is rolled on the
    walker attack table and its damage, stress or death is applied.

    Returns:
        The d66 key rolled, or None if the attack was dodged or skipped.
    """
    rng = rng or random.Random()
    if not combatant.is_alive:
        return None
    actor = actor_for(encounter, combatant)
    if actor is None:
        return None

    record_event(
        encounter, "walker_attack", f"A walker lunges at {combatant.name}!", actor_id=combatant.id,
    )
    dodge = actor.roll(Skill.MOBILITY, rng=rng)
    record_event(
        encounter, "roll", f"{combatant.name} tries to dodge the walker.",
        actor_id=combatant.id, roll=dodge,
    )
    if dodge.successes > 0:
        record_event(encounter, "dodge", f"{combatant.name} dodges successfully!", actor_id=combatant.id)
        return None

    roll = roll_d66("Walker Attack", rng=rng)
    damage, stress, lethal, text = WALKER_ATTACK_TABLE[roll.key]
    record_event(
        encounter, "table_roll", f"Walker Attack {roll.roll}: {text}",
        actor_id=combatant.id, table=roll.table_name, result=roll.roll,
    )

    if lethal:
        apply_damage(encounter, combatant, combatant.health)
        logger.info("%s was killed by a walker", combatant.name)
        record_event(encounter, "killed", f"{combatant.name} has died!", actor_id=combatant.id)
        return roll.key

    if damage is None:
        damage = actor.weapon_damage()
    if damage:
        apply_damage(encounter, combatant, damage)
        record_event(
            encounter, "hit", f"{combatant.name} takes {damage} damage.",
            actor_id=combatant.id, damage=damage, target_health=combatant.health,
        )
    if stress:
        new_stress = actor.add_stress(stress)
        record_event(
            encounter, "stress", f"{combatant.name} takes {stress} stress.",
            actor_id=combatant.id, stress=new_stress,
        )
    return roll.key
