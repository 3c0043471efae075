"""Narrative event recording: the engine's message sink."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from models.encounter import CombatEvent

if TYPE_CHECKING:
    from engine.dice import RollResult
    from models.encounter import Encounter


def current_round(encounter: Encounter) -> int:
    if encounter.brawl is not None:
        return encounter.brawl.round
    if encounter.swarm is not None:
        return encounter.swarm.round
    return 0


def record_event(
    encounter: Encounter,
    kind: str,
    description: str,
    actor_id: str | None = None,
    roll: RollResult | None = None,
    **details: Any,
) -> CombatEvent:
    """Append an event to the encounter's log.

    Args:
        encounter: The encounter being resolved (mutated in place).
        kind: Short event category, e.g. "roll", "hit", "rejected", "skipped".
        description: Human-readable narrative.
        actor_id: Combatant the event is about, if any.
        roll: Structured roll payload for display.
        **details: Extra structured data.

    Returns:
        The logged event.
    """
    phase = None
    if encounter.brawl is not None:
        phase = encounter.brawl.phase_name
    event = CombatEvent(
        round=current_round(encounter),
        phase=phase,
        actor_id=actor_id,
        kind=kind,
        description=description,
        roll=roll,
        details=details,
        timestamp=datetime.now(timezone.utc),
    )
    encounter.event_log.append(event)
    return event
