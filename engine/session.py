"""Single writer for the shared encounter.

Every change goes through EncounterSession.dispatch, which serialises
commands, skips phase and swarm-round triggers that were already
processed, and publishes each new encounter whole.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Callable

from engine.combat import reduce
from models.commands import (
    Command,
    EndCombat,
    ResolvePhase,
    ResolveSwarmRound,
    StartBrawl,
    StartSwarm,
)
from models.encounter import CombatEvent, Encounter

logger = logging.getLogger(__name__)


class EncounterSession:
    """Holds the current encounter and applies commands to it one at a time.

    Args:
        encounter: Starting encounter.
        rng: Optional Random instance shared by every roll (seeded in tests).
        on_change: Called with the new encounter after each command that
            emitted events, e.g. to persist it.
    """

    def __init__(
        self,
        encounter: Encounter,
        rng: random.Random | None = None,
        on_change: Callable[[Encounter], None] | None = None,
    ) -> None:
        self._encounter = encounter
        self._rng = rng or random.Random()
        self._on_change = on_change
        self._lock = threading.Lock()
        self._processed: set[tuple] = set()

    @property
    def encounter(self) -> Encounter:
        return self._encounter

    def replace(self, encounter: Encounter) -> None:
        """Swap in a new encounter outside the command flow (roster edits)."""
        with self._lock:
            self._encounter = encounter
            if self._on_change:
                self._on_change(encounter)

    def dispatch(self, command: Command) -> tuple[Encounter, list[CombatEvent]]:
        """Apply one command.

        A resolve trigger whose (round, phase) or swarm round was already
        resolved is ignored and returns the current encounter with no events.
        A resolve the engine refused is not remembered and can be sent again.

        Raises:
            ValueError: Propagated from the reducer for setup errors.
        """
        with self._lock:
            key = _resolution_key(command)
            if key is not None and key in self._processed:
                logger.debug("Ignoring duplicate resolution %s", key)
                return self._encounter, []

            encounter, events = reduce(self._encounter, command, self._rng)
            if isinstance(command, (StartBrawl, StartSwarm, EndCombat)):
                # Round numbers start over with each fight
                self._processed.clear()
            # A refused resolve may be retried once the table fixes the cause
            refused = any(event.kind == "rejected" for event in events)
            if key is not None and encounter is not self._encounter and not refused:
                self._processed.add(key)

            self._encounter = encounter
            if events and self._on_change:
                self._on_change(encounter)
            return encounter, events


def _resolution_key(command: Command) -> tuple | None:
    if isinstance(command, ResolvePhase):
        return ("phase", command.round, command.phase_index)
    if isinstance(command, ResolveSwarmRound):
        return ("swarm", command.round)
    return None
