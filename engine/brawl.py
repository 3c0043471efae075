"""Six-phase brawl engine: planning, phase-ordered resolution, round wrap."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING

from engine.actors import actor_for
from engine.events import record_event
from engine.rules import heal, resolve_opposed_attack
from models.characters import RangeCategory, Skill
from models.encounter import (
    ACTION_PHASES,
    BRAWL_PHASES,
    TARGETED_ACTIONS,
    BrawlActionType,
    BrawlPhaseState,
    Combatant,
    CombatantType,
    CombatType,
    EncounterStatus,
    PlannedAction,
)

if TYPE_CHECKING:
    from models.commands import Participant
    from models.encounter import Encounter

logger = logging.getLogger(__name__)


def build_combatant(encounter: Encounter, participant: Participant) -> Combatant | None:
    """Project a roster record into a combatant.

    Returns:
        The combatant, or None if the record doesn't exist.
    """
    if participant.type == CombatantType.PC:
        character = encounter.characters.get(participant.id)
        if character is None:
            return None
        armor = character.equipped_armor()
        return Combatant(
            id=character.id,
            type=CombatantType.PC,
            name=character.name,
            team=participant.team,
            health=character.health,
            max_health=character.max_health,
            armor_level=armor.armor_level if armor else 0,
            armor_penalty=armor.penalty if armor else 0,
            range=participant.range,
        )
    npc = encounter.npcs.get(participant.id)
    if npc is None:
        return None
    return Combatant(
        id=npc.id,
        type=CombatantType.NPC,
        name=npc.name,
        team=participant.team,
        health=npc.health,
        max_health=npc.max_health,
        range=participant.range,
    )


def build_combatants(encounter: Encounter, participants: list[Participant]) -> list[Combatant]:
    """Build combatants for every participant with a roster record.

    Raises:
        ValueError: If no participant could be found.
    """
    combatants = []
    for participant in participants:
        combatant = build_combatant(encounter, participant)
        if combatant is None:
            logger.info("Skipping participant %s: no record", participant.id)
            continue
        combatants.append(combatant)
    if not combatants:
        raise ValueError("No valid participants to start combat")
    return combatants


def start_brawl(encounter: Encounter, participants: list[Participant]) -> Encounter:
    """Begin a brawl at round 1, Taking Cover phase.

    Args:
        encounter: Current encounter (mutated in place).
        participants: Who is fighting, and on which side.

    Returns:
        Updated encounter.

    Raises:
        ValueError: If combat is already running or nobody valid joins.
    """
    if encounter.status == EncounterStatus.ACTIVE:
        raise ValueError("Combat is already in progress")

    encounter.brawl = BrawlPhaseState(combatants=build_combatants(encounter, participants))
    encounter.swarm = None
    encounter.combat_type = CombatType.BRAWL
    encounter.status = EncounterStatus.ACTIVE
    record_event(
        encounter, "combat_start",
        f"A brawl breaks out! {len(encounter.brawl.combatants)} combatants.",
    )
    return encounter


def plan_action(
    encounter: Encounter,
    combatant_id: str,
    action: PlannedAction | None,
) -> bool:
    """Set (or clear, with None) a combatant's planned action for this round.

    Returns:
        True if the plan was accepted. Rejections are logged as events.
    """
    brawl = encounter.brawl
    if brawl is None:
        record_event(encounter, "rejected", "No brawl is in progress.")
        return False

    combatant = brawl.get(combatant_id)
    if combatant is None:
        record_event(encounter, "rejected", f"Combatant '{combatant_id}' not found.")
        return False

    if action is None:
        combatant.planned_action = None
        return True

    if not combatant.is_alive:
        record_event(
            encounter, "rejected", f"{combatant.name} is Broken and cannot act.",
            actor_id=combatant.id,
        )
        return False

    if action.type in TARGETED_ACTIONS:
        if action.target_id is None or brawl.get(action.target_id) is None:
            record_event(
                encounter, "rejected",
                f"{combatant.name} needs a valid target for {action.type.value}.",
                actor_id=combatant.id,
            )
            return False

    brawl.declarations += 1
    combatant.planned_action = action.model_copy(update={"sequence": brawl.declarations})
    logger.debug("%s plans %s", combatant.name, action.type.value)
    return True


def actors_for_phase(brawl: BrawlPhaseState, phase_index: int) -> list[Combatant]:
    """Combatants whose planned action belongs to a phase, in declaration order."""
    actors = [
        c for c in brawl.combatants
        if c.planned_action is not None and ACTION_PHASES[c.planned_action.type] == phase_index
    ]
    return sorted(actors, key=lambda c: c.planned_action.sequence)


def resolve_phase(encounter: Encounter, rng: random.Random | None = None) -> Encounter:
    """Resolve every action planned for the current phase, then advance.

    Callers that may fire more than once for the same phase must guard on
    (round, phase index) before calling; see EncounterSession.

    Args:
        encounter: Current encounter (mutated in place).
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        Updated encounter.
    """
    rng = rng or random.Random()
    brawl = encounter.brawl
    if brawl is None or encounter.status != EncounterStatus.ACTIVE:
        record_event(encounter, "rejected", "No brawl is in progress.")
        return encounter

    phase = brawl.current_phase_index
    record_event(encounter, "phase", f"Resolving {BRAWL_PHASES[phase]} Phase")
    actors = actors_for_phase(brawl, phase)
    logger.debug(
        "Round %d phase %d: %s", brawl.round, phase, [a.name for a in actors],
    )

    PHASE_RESOLVERS[phase](encounter, actors, rng)
    if check_brawl_over(encounter):
        return encounter
    advance_phase(encounter)
    return encounter


def check_brawl_over(encounter: Encounter) -> bool:
    """Complete the brawl once only one side has anyone standing.

    A brawl that started with a single side never ends on its own.

    Returns:
        True if the brawl just completed.
    """
    brawl = encounter.brawl
    teams = {c.team for c in brawl.combatants}
    if len(teams) < 2:
        return False
    standing = {c.team for c in brawl.combatants if c.is_alive}
    if len(standing) > 1:
        return False

    encounter.status = EncounterStatus.COMPLETED
    if standing:
        winner = standing.pop()
        description = f"Team {winner} is the last one standing!"
    else:
        winner = None
        description = "Nobody is left standing."
    logger.info("Brawl over after round %d, winner %s", brawl.round, winner)
    record_event(encounter, "combat_end", description, winner=winner)
    return True


def _take_cover(encounter: Encounter, actors: list[Combatant], rng: random.Random) -> None:
    for actor in actors:
        if not actor.is_alive:
            continue
        if actor.is_taking_cover:
            actor.is_taking_cover = False
            record_event(
                encounter, "leaves_cover",
                f"{actor.name} leaves cover and exposes themselves.",
                actor_id=actor.id,
            )
            continue

        rollable = actor_for(encounter, actor)
        if rollable is None:
            _missing(encounter, actor)
            continue
        result = rollable.roll(Skill.MOBILITY, rng=rng)
        record_event(
            encounter, "roll", f"{actor.name} attempts to take cover (Mobility roll)",
            actor_id=actor.id, roll=result,
        )
        actor.has_acted = True
        if result.successes > 0:
            actor.is_taking_cover = True
            record_event(
                encounter, "takes_cover",
                f"{actor.name} successfully takes cover! (Ranged attacks against them have -1 dice)",
                actor_id=actor.id,
            )
        else:
            record_event(
                encounter, "cover_failed",
                f"{actor.name} fails to find adequate cover this round.",
                actor_id=actor.id,
            )


def _ranged_combat(encounter: Encounter, actors: list[Combatant], rng: random.Random) -> None:
    brawl = encounter.brawl
    for actor in actors:
        if actor.planned_action.type == BrawlActionType.OVERWATCH and actor.is_alive:
            actor.is_on_overwatch = True
            actor.has_acted = True
            record_event(
                encounter, "overwatch",
                f"{actor.name} goes on overwatch, ready to shoot anyone who moves!",
                actor_id=actor.id,
            )

    # NPCs declare targets first, then PCs
    shooters = [a for a in actors if a.planned_action.type == BrawlActionType.RANGED_ATTACK]
    shooters.sort(key=lambda a: 0 if a.type == CombatantType.NPC else 1)
    for attacker in shooters:
        defender = brawl.get(attacker.planned_action.target_id)
        if not _can_attack(encounter, attacker, defender):
            continue
        record_event(
            encounter, "attack", f"{attacker.name} opens fire on {defender.name}!",
            actor_id=attacker.id, target_id=defender.id,
        )
        resolve_opposed_attack(encounter, attacker, defender, rng)


def _close_combat(encounter: Encounter, actors: list[Combatant], rng: random.Random) -> None:
    brawl = encounter.brawl
    for attacker in actors:
        defender = brawl.get(attacker.planned_action.target_id)
        if not _can_attack(encounter, attacker, defender):
            continue
        if attacker.range != RangeCategory.SHORT:
            record_event(
                encounter, "skipped",
                f"{attacker.name} cannot reach {defender.name} for close combat! (Not at Short range)",
                actor_id=attacker.id,
            )
            continue
        record_event(
            encounter, "attack", f"{attacker.name} attacks {defender.name} in close combat!",
            actor_id=attacker.id, target_id=defender.id,
        )
        resolve_opposed_attack(encounter, attacker, defender, rng)


def _movement(encounter: Encounter, actors: list[Combatant], rng: random.Random) -> None:
    brawl = encounter.brawl
    for mover in actors:
        if not mover.is_alive:
            continue
        watchers = [
            c for c in brawl.combatants
            if c.is_on_overwatch and c.id != mover.id and c.is_alive
        ]
        for watcher in watchers:
            record_event(
                encounter, "overwatch_fire",
                f"{watcher.name} fires at {mover.name} as they move!",
                actor_id=watcher.id, target_id=mover.id,
            )
            resolve_opposed_attack(encounter, watcher, mover, rng)
            watcher.is_on_overwatch = False
            if not mover.is_alive:
                break

        mover.has_acted = True
        if not mover.is_alive:
            continue
        destination = mover.planned_action.destination
        if destination is not None:
            mover.range = destination
            description = f"{mover.name} moves to {destination.value} range."
        else:
            description = f"{mover.name} moves to a new position."
        record_event(encounter, "move", description, actor_id=mover.id)


def _first_aid(encounter: Encounter, actors: list[Combatant], rng: random.Random) -> None:
    brawl = encounter.brawl
    for medic in actors:
        if not medic.is_alive:
            continue
        patient = brawl.get(medic.planned_action.target_id)
        if patient is None or not patient.is_alive or patient.id == medic.id:
            record_event(
                encounter, "skipped",
                f"{medic.name} has no valid patient for first aid.",
                actor_id=medic.id,
            )
            continue

        rollable = actor_for(encounter, medic)
        if rollable is None:
            _missing(encounter, medic)
            continue
        result = rollable.roll(Skill.MEDICINE, rng=rng)
        medic.has_acted = True
        record_event(
            encounter, "roll", f"{medic.name} attempts first aid on {patient.name} (Medicine roll)",
            actor_id=medic.id, roll=result,
        )
        if result.successes > 0:
            healed = heal(encounter, patient, result.successes)
            record_event(
                encounter, "healed",
                f"{medic.name} successfully heals {patient.name} for {healed} health!",
                actor_id=medic.id, target_id=patient.id, healed=healed,
            )
        else:
            record_event(
                encounter, "first_aid_failed",
                f"{medic.name}'s first aid attempt fails.",
                actor_id=medic.id,
            )


def _other_actions(encounter: Encounter, actors: list[Combatant], rng: random.Random) -> None:
    brawl = encounter.brawl
    leaders = [
        a for a in actors
        if a.planned_action.type == BrawlActionType.USE_LEADERSHIP and a.is_alive
    ]
    granted = 0
    if leaders:
        leader, superseded = leaders[0], leaders[1:]
        for other in superseded:
            record_event(
                encounter, "skipped",
                f"Only one character can use Leadership per round! {leader.name} declared first; "
                f"{other.name}'s orders are drowned out.",
                actor_id=other.id,
            )
        rollable = actor_for(encounter, leader)
        if rollable is None:
            _missing(encounter, leader)
        else:
            result = rollable.roll(Skill.LEADERSHIP, rng=rng)
            leader.has_acted = True
            record_event(
                encounter, "roll", f"{leader.name} shouts orders to rally their allies (Leadership roll)",
                actor_id=leader.id, roll=result,
            )
            if result.successes > 0:
                granted = result.successes
                record_event(
                    encounter, "leadership",
                    f"{leader.name} provides {granted} bonus dice to distribute among allies for next round!",
                    actor_id=leader.id, bonus_dice=granted,
                )
    brawl.leadership_dice = granted

    for actor in actors:
        if actor.planned_action.type == BrawlActionType.OTHER and actor.is_alive:
            actor.has_acted = True
            record_event(
                encounter, "other", f"{actor.name} performs a special action.",
                actor_id=actor.id,
            )


PHASE_RESOLVERS = [
    _take_cover,
    _ranged_combat,
    _close_combat,
    _movement,
    _first_aid,
    _other_actions,
]


def _can_attack(encounter: Encounter, attacker: Combatant, defender: Combatant | None) -> bool:
    if not attacker.is_alive:
        return False
    if defender is None or not defender.is_alive:
        record_event(
            encounter, "skipped",
            f"{attacker.name} has no valid target.",
            actor_id=attacker.id,
        )
        return False
    return True


def _missing(encounter: Encounter, combatant: Combatant) -> None:
    record_event(
        encounter, "skipped",
        f"No character record for {combatant.name}; nothing happens.",
        actor_id=combatant.id,
    )


def advance_phase(encounter: Encounter) -> Encounter:
    """Move to the next phase, wrapping to phase 0 of the next round.

    On a wrap every planned action, overwatch and acted flag is cleared.
    Cover persists until a combatant leaves it.
    """
    brawl = encounter.brawl
    next_phase = brawl.current_phase_index + 1
    if next_phase < len(BRAWL_PHASES):
        brawl.current_phase_index = next_phase
        return encounter

    brawl.current_phase_index = 0
    brawl.round += 1
    for combatant in brawl.combatants:
        combatant.planned_action = None
        combatant.is_on_overwatch = False
        combatant.has_acted = False
    record_event(encounter, "round", f"Round {brawl.round} begins.")
    return encounter
