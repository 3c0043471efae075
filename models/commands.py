"""Commands accepted by the encounter reducer."""

from typing import Literal, Union

from pydantic import BaseModel

from engine.dice import RollResult
from models.characters import RangeCategory
from models.encounter import CombatantType, PlannedAction, SwarmConsequence


class Participant(BaseModel):
    """A character or NPC joining a fight."""
    id: str
    type: CombatantType
    team: str = "A"
    range: RangeCategory = RangeCategory.SHORT


class StartBrawl(BaseModel):
    kind: Literal["start_brawl"] = "start_brawl"
    participants: list[Participant]


class PlanAction(BaseModel):
    """Declare (or clear, with no action) a combatant's action for the round."""
    kind: Literal["plan_action"] = "plan_action"
    combatant_id: str
    action: PlannedAction | None = None


class ResolvePhase(BaseModel):
    """Resolve the phase the caller saw. Stale or repeated keys are ignored."""
    kind: Literal["resolve_phase"] = "resolve_phase"
    round: int
    phase_index: int


class StartSwarm(BaseModel):
    kind: Literal["start_swarm"] = "start_swarm"
    participants: list[Participant]
    threat_level: int
    swarm_size: int


class SelectSwarmSkill(BaseModel):
    kind: Literal["select_swarm_skill"] = "select_swarm_skill"
    combatant_id: str
    skill: str | None = None


class ResolveSwarmRound(BaseModel):
    kind: Literal["resolve_swarm_round"] = "resolve_swarm_round"
    round: int


class ApplySwarmConsequence(BaseModel):
    """Apply a lost round's consequence. None rolls it on the Swarm Loss table."""
    kind: Literal["apply_swarm_consequence"] = "apply_swarm_consequence"
    choice: SwarmConsequence | None = None


class RollSkill(BaseModel):
    """A character or NPC from the roster rolls a skill outside phase order."""
    kind: Literal["roll_skill"] = "roll_skill"
    actor_id: str
    skill: str
    help_dice: int = 0


class PushRoll(BaseModel):
    kind: Literal["push_roll"] = "push_roll"
    actor_id: str
    roll: RollResult


class EndCombat(BaseModel):
    kind: Literal["end_combat"] = "end_combat"


Command = Union[
    StartBrawl,
    PlanAction,
    ResolvePhase,
    StartSwarm,
    SelectSwarmSkill,
    ResolveSwarmRound,
    ApplySwarmConsequence,
    RollSkill,
    PushRoll,
    EndCombat,
]
