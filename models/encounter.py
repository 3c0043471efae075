"""Encounter, brawl, swarm and event models for the Walker Table server."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from engine.dice import RollResult
from models.characters import NPC, Character, RangeCategory


class GameMode(str, Enum):
    """How the table is being played."""
    CAMPAIGN = "Campaign"
    SURVIVAL = "Survival"
    SOLO = "Solo"                   # Player-facing rolls, fixed NPC defence


class CombatType(str, Enum):
    BRAWL = "Brawl"
    SWARM = "Swarm"


class EncounterStatus(str, Enum):
    """Possible states for an encounter."""
    WAITING = "waiting"             # No combat running
    ACTIVE = "active"               # Combat in progress
    COMPLETED = "completed"         # Combat just ended


class CombatantType(str, Enum):
    PC = "PC"
    NPC = "NPC"


class BrawlActionType(str, Enum):
    """Actions a combatant can plan for a brawl round."""
    TAKE_COVER = "TakeCover"
    RANGED_ATTACK = "RangedAttack"
    OVERWATCH = "Overwatch"
    CLOSE_ATTACK = "CloseAttack"
    MOVE = "Move"
    FIRST_AID = "FirstAid"
    USE_LEADERSHIP = "UseLeadership"
    OTHER = "Other"


class SwarmConsequence(str, Enum):
    """What happens after the survivors lose a swarm round."""
    RAISE_THREAT = "RaiseThreat"
    RAISE_SIZE = "RaiseSize"
    SWARM_ATTACK = "SwarmAttack"


class SwarmAttack(str, Enum):
    SINGLE = "Single attack"
    BLOCK = "Block"
    MASS = "Mass attack"


BRAWL_PHASES: list[str] = [
    "Taking Cover",
    "Ranged Combat",
    "Close Combat",
    "Movement",
    "First Aid",
    "Other",
]

# Action type -> index into BRAWL_PHASES
ACTION_PHASES: dict[BrawlActionType, int] = {
    BrawlActionType.TAKE_COVER: 0,
    BrawlActionType.RANGED_ATTACK: 1,
    BrawlActionType.OVERWATCH: 1,
    BrawlActionType.CLOSE_ATTACK: 2,
    BrawlActionType.MOVE: 3,
    BrawlActionType.FIRST_AID: 4,
    BrawlActionType.USE_LEADERSHIP: 5,
    BrawlActionType.OTHER: 5,
}

TARGETED_ACTIONS = {
    BrawlActionType.RANGED_ATTACK,
    BrawlActionType.CLOSE_ATTACK,
    BrawlActionType.FIRST_AID,
}


class PlannedAction(BaseModel):
    """The one action a combatant has declared for this round."""
    type: BrawlActionType
    target_id: str | None = None
    destination: RangeCategory | None = None  # For Move
    sequence: int = 0               # Declaration order within the round


class Combatant(BaseModel):
    """Per-encounter projection of a character or NPC."""
    id: str                         # Character or NPC id
    type: CombatantType
    name: str
    team: str = "A"
    health: int
    max_health: int
    armor_level: int = 0
    armor_penalty: int = 0
    range: RangeCategory = RangeCategory.SHORT
    planned_action: PlannedAction | None = None
    has_acted: bool = False
    is_taking_cover: bool = False
    is_on_overwatch: bool = False
    selected_swarm_skill: str | None = None

    @property
    def is_alive(self) -> bool:
        return self.health > 0


class BrawlPhaseState(BaseModel):
    """Round and phase pointer for a brawl."""
    round: int = 1
    current_phase_index: int = 0
    combatants: list[Combatant] = []
    leadership_dice: int = 0        # Bonus dice granted for the next round
    declarations: int = 0           # Plans accepted so far, for ordering

    @property
    def phase_name(self) -> str:
        return BRAWL_PHASES[self.current_phase_index]

    def get(self, combatant_id: str | None) -> Combatant | None:
        for combatant in self.combatants:
            if combatant.id == combatant_id:
                return combatant
        return None


class SwarmRoundResult(BaseModel):
    """Outcome of one round against a swarm."""
    round: int
    successes: int
    needed: int
    is_win: bool
    almost: bool                    # Lost, but reached half of needed
    swarm_defeated: bool = False
    messed_up_ids: list[str] = []


class SwarmEncounterState(BaseModel):
    """Threat track for a fight against a walker swarm."""
    round: int = 1
    threat_level: int
    swarm_size: int
    pending_consequence: bool = False
    block_active: bool = False      # Mobility/Stealth need an extra success
    combatants: list[Combatant] = []
    last_result: SwarmRoundResult | None = None

    @property
    def needed_successes(self) -> int:
        return self.threat_level + self.swarm_size

    def get(self, combatant_id: str | None) -> Combatant | None:
        for combatant in self.combatants:
            if combatant.id == combatant_id:
                return combatant
        return None


class CombatEvent(BaseModel):
    """A logged event from the encounter."""
    round: int
    phase: str | None = None
    actor_id: str | None = None     # Combatant id, or None for system events
    kind: str                       # "roll", "hit", "cover", "rejected", ...
    description: str
    roll: RollResult | None = None
    details: dict = {}
    timestamp: datetime


class Encounter(BaseModel):
    """The full shared table state."""
    encounter_id: str
    name: str = "Table"
    mode: GameMode = GameMode.CAMPAIGN
    status: EncounterStatus = EncounterStatus.WAITING
    characters: dict[str, Character] = {}   # character_id -> Character
    npcs: dict[str, NPC] = {}               # npc_id -> NPC
    combat_type: CombatType | None = None
    brawl: BrawlPhaseState | None = None
    swarm: SwarmEncounterState | None = None
    event_log: list[CombatEvent] = []
    combat_log_history: list[list[CombatEvent]] = []

    @property
    def combatants(self) -> list[Combatant]:
        if self.brawl is not None:
            return self.brawl.combatants
        if self.swarm is not None:
            return self.swarm.combatants
        return []

    def get_combatant(self, combatant_id: str | None) -> Combatant | None:
        for combatant in self.combatants:
            if combatant.id == combatant_id:
                return combatant
        return None
