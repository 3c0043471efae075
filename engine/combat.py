"""Encounter orchestration: the reducer, roster changes, ending combat, persistence."""

from __future__ import annotations

import json
import logging
import os
import random
from pathlib import Path

from engine.actors import roster_actor
from engine.brawl import plan_action, resolve_phase, start_brawl
from engine.dice import PushNotAllowed, RollResult, push_previous_roll
from engine.events import record_event
from engine.swarm import (
    apply_swarm_consequence,
    resolve_swarm_round,
    select_swarm_skill,
    start_swarm,
)
from models.characters import NPC, Character
from models.commands import (
    ApplySwarmConsequence,
    Command,
    EndCombat,
    PlanAction,
    PushRoll,
    ResolvePhase,
    ResolveSwarmRound,
    RollSkill,
    SelectSwarmSkill,
    StartBrawl,
    StartSwarm,
)
from models.encounter import CombatEvent, Encounter, EncounterStatus, GameMode

logger = logging.getLogger(__name__)


def create_encounter(
    encounter_id: str,
    name: str = "Table",
    mode: GameMode = GameMode.CAMPAIGN,
) -> Encounter:
    """Initialize an empty table with no roster and no combat.

    Args:
        encounter_id: Unique identifier for the encounter.
        name: Display name.
        mode: How the table is played. Solo changes NPC defence and
            swarm consequences.

    Returns:
        A fresh Encounter in WAITING status.
    """
    return Encounter(encounter_id=encounter_id, name=name, mode=mode)


def add_character(encounter: Encounter, character: Character) -> Encounter:
    """Add or replace a player character on the roster."""
    encounter.characters[character.id] = character
    return encounter


def add_npc(encounter: Encounter, npc: NPC) -> Encounter:
    """Add or replace an NPC on the roster."""
    encounter.npcs[npc.id] = npc
    return encounter


def reduce(
    encounter: Encounter,
    command: Command,
    rng: random.Random | None = None,
) -> tuple[Encounter, list[CombatEvent]]:
    """Apply one command to an encounter.

    The input encounter is never mutated: the command runs against a deep
    copy, and the copy is returned whole. A ResolvePhase or
    ResolveSwarmRound whose round/phase doesn't match the current one is
    ignored and the original encounter is returned unchanged.

    A refused command leaves the roster and the fight as they were; the
    returned copy differs only by the rejected event added to its log.

    Args:
        encounter: Current encounter.
        command: The command to apply.
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        (new_encounter, events) tuple. Events are the ones this command
        emitted, in order.

    Raises:
        ValueError: For setup errors (e.g. a fight with no valid participants)
            or an unknown command.
    """
    rng = rng or random.Random()

    if isinstance(command, ResolvePhase) and not _is_current_phase(encounter, command):
        logger.debug(
            "Ignoring stale phase resolution for round %d phase %d",
            command.round, command.phase_index,
        )
        return encounter, []
    if isinstance(command, ResolveSwarmRound) and not _is_current_swarm_round(encounter, command):
        logger.debug("Ignoring stale swarm round %d", command.round)
        return encounter, []

    state = encounter.model_copy(deep=True)
    log_start = len(state.event_log)
    history_start = len(state.combat_log_history)

    if isinstance(command, StartBrawl):
        if state.status == EncounterStatus.COMPLETED:
            end_combat(state)
            log_start, history_start = 0, len(state.combat_log_history)
        start_brawl(state, command.participants)
    elif isinstance(command, PlanAction):
        plan_action(state, command.combatant_id, command.action)
    elif isinstance(command, ResolvePhase):
        resolve_phase(state, rng)
    elif isinstance(command, StartSwarm):
        if state.status == EncounterStatus.COMPLETED:
            end_combat(state)
            log_start, history_start = 0, len(state.combat_log_history)
        start_swarm(state, command.participants, command.threat_level, command.swarm_size)
    elif isinstance(command, SelectSwarmSkill):
        select_swarm_skill(state, command.combatant_id, command.skill)
    elif isinstance(command, ResolveSwarmRound):
        resolve_swarm_round(state, rng)
    elif isinstance(command, ApplySwarmConsequence):
        apply_swarm_consequence(state, command.choice, rng)
    elif isinstance(command, RollSkill):
        roll_skill(state, command.actor_id, command.skill, command.help_dice, rng)
    elif isinstance(command, PushRoll):
        push_roll(state, command.actor_id, command.roll, rng)
    elif isinstance(command, EndCombat):
        end_combat(state)
    else:
        raise ValueError(f"Unknown command: {type(command).__name__}")

    events = _new_events(state, log_start, history_start)
    for event in events:
        if event.kind == "rejected":
            logger.info("Rejected %s: %s", type(command).__name__, event.description)
    return state, events


def _is_current_phase(encounter: Encounter, command: ResolvePhase) -> bool:
    brawl = encounter.brawl
    if brawl is None:
        return True  # Let the resolver explain there's no brawl
    return (command.round, command.phase_index) == (brawl.round, brawl.current_phase_index)


def _is_current_swarm_round(encounter: Encounter, command: ResolveSwarmRound) -> bool:
    swarm = encounter.swarm
    if swarm is None:
        return True
    return command.round == swarm.round


def _new_events(state: Encounter, log_start: int, history_start: int) -> list[CombatEvent]:
    # end_combat may have archived part of this command's output
    archived: list[CombatEvent] = []
    for log in state.combat_log_history[history_start:]:
        archived.extend(log)
    if archived:
        return archived[log_start:] + list(state.event_log)
    return list(state.event_log[log_start:])


def roll_skill(
    encounter: Encounter,
    actor_id: str,
    skill: str,
    help_dice: int = 0,
    rng: random.Random | None = None,
) -> CombatEvent | None:
    """Roll a skill for a roster character or NPC and log the result.

    Returns:
        The roll event, or None if the actor doesn't exist.
    """
    actor = roster_actor(encounter, actor_id)
    if actor is None:
        record_event(encounter, "rejected", f"No character or NPC with id '{actor_id}'.")
        return None
    result = actor.roll(skill, help_dice=help_dice, rng=rng)
    return record_event(
        encounter, "roll", f"{actor.name} rolls {result.skill}.",
        actor_id=actor_id, roll=result,
    )


def push_roll(
    encounter: Encounter,
    actor_id: str,
    previous: RollResult,
    rng: random.Random | None = None,
) -> CombatEvent | None:
    """Push a failed roll. A player character also takes one stress.

    Ineligible pushes (already pushed, succeeded, or messed up) are logged
    as rejected; stress and the roll are left alone.

    Returns:
        The pushed roll's event, or None if the push was refused.
    """
    actor = roster_actor(encounter, actor_id)
    if actor is None:
        record_event(encounter, "rejected", f"No character or NPC with id '{actor_id}'.")
        return None
    try:
        result = push_previous_roll(previous, rng)
    except PushNotAllowed as exc:
        record_event(
            encounter, "rejected", f"{actor.name} cannot push: {exc}.", actor_id=actor_id,
        )
        return None

    stress = actor.add_stress(1) if actor.is_pc else 0
    return record_event(
        encounter, "roll", f"{actor.name} pushes the {result.skill} roll!",
        actor_id=actor_id, roll=result, stress=stress,
    )


def end_combat(encounter: Encounter) -> Encounter:
    """Close the current fight and return the table to WAITING.

    The roster persists: characters and NPCs keep their health and stress.
    The combat's event log is archived into history.

    Args:
        encounter: Current encounter (mutated in place).

    Returns:
        Updated encounter.
    """
    if encounter.brawl is not None or encounter.swarm is not None:
        record_event(encounter, "combat_end", "Combat has ended.")

    if encounter.event_log:
        encounter.combat_log_history.append(list(encounter.event_log))
        encounter.event_log = []

    encounter.brawl = None
    encounter.swarm = None
    encounter.combat_type = None
    encounter.status = EncounterStatus.WAITING
    logger.info("Combat ended; %d logs archived", len(encounter.combat_log_history))
    return encounter


def save_encounter(encounter: Encounter, path: str) -> None:
    """Persist the encounter to a JSON file.

    Writes to a temporary file first, then renames for atomicity.

    Args:
        encounter: The encounter to save.
        path: File path to write to.
    """
    tmp_path = path + ".tmp"
    data = encounter.model_dump(mode="json")
    with open(tmp_path, "w") as f:
        json.dump(data, f, default=str)
    os.replace(tmp_path, path)


def load_encounter(path: str) -> Encounter | None:
    """Load an encounter from a JSON file.

    Args:
        path: File path to read from.

    Returns:
        The loaded Encounter, or None if the file doesn't exist.
    """
    if not Path(path).exists():
        return None
    with open(path) as f:
        data = json.load(f)
    return Encounter.model_validate(data)
