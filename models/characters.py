"""Character, NPC and gear data models for the Walker Table server."""

from enum import Enum

from pydantic import BaseModel

from config import DEFAULT_MAX_HEALTH, DEFAULT_MAX_STRESS, DEFAULT_WEAPON_DAMAGE


class Attribute(str, Enum):
    """The four core attributes."""
    STRENGTH = "Strength"
    AGILITY = "Agility"
    WITS = "Wits"
    EMPATHY = "Empathy"


class Skill(str, Enum):
    """Skills a survivor can roll."""
    CLOSE_COMBAT = "Close Combat"
    ENDURE = "Endure"
    FORCE = "Force"
    MOBILITY = "Mobility"
    RANGED_COMBAT = "Ranged Combat"
    STEALTH = "Stealth"
    SCOUT = "Scout"
    SURVIVAL = "Survival"
    TECH = "Tech"
    LEADERSHIP = "Leadership"
    MANIPULATION = "Manipulation"
    MEDICINE = "Medicine"


def skill_name(skill: str) -> str:
    """Plain skill name, whether given a Skill member or a raw string."""
    return skill.value if isinstance(skill, Skill) else skill


SKILL_ATTRIBUTES: dict[str, Attribute] = {
    Skill.CLOSE_COMBAT: Attribute.STRENGTH,
    Skill.ENDURE: Attribute.STRENGTH,
    Skill.FORCE: Attribute.STRENGTH,
    Skill.MOBILITY: Attribute.AGILITY,
    Skill.RANGED_COMBAT: Attribute.AGILITY,
    Skill.STEALTH: Attribute.AGILITY,
    Skill.SCOUT: Attribute.WITS,
    Skill.SURVIVAL: Attribute.WITS,
    Skill.TECH: Attribute.WITS,
    Skill.LEADERSHIP: Attribute.EMPATHY,
    Skill.MANIPULATION: Attribute.EMPATHY,
    Skill.MEDICINE: Attribute.EMPATHY,
}


class SkillExpertise(str, Enum):
    """NPC skill tiers."""
    NONE = "None"
    TRAINED = "Trained"
    EXPERT = "Expert"
    MASTER = "Master"


# Base dice an NPC rolls for a skill at each tier
NPC_DICE_POOLS: dict[SkillExpertise, int] = {
    SkillExpertise.NONE: 4,
    SkillExpertise.TRAINED: 5,
    SkillExpertise.EXPERT: 8,
    SkillExpertise.MASTER: 10,
}


class ItemType(str, Enum):
    """Inventory item categories."""
    CLOSE = "Close"
    RANGED = "Ranged"
    GEAR = "Gear"
    ARMOR = "Armor"
    EXPLOSIVE = "Explosive"


class RangeCategory(str, Enum):
    """Distance bands used in combat."""
    SHORT = "Short"
    LONG = "Long"
    EXTREME = "Extreme"


class InventoryItem(BaseModel):
    """A piece of gear, weapon or armor."""
    id: str
    name: str                       # e.g., "Baseball Bat"
    type: ItemType = ItemType.GEAR
    bonus: int = 0                  # Gear bonus dice
    skill_affected: str | None = None
    damage: int | None = None       # Weapon damage
    equipped: bool = False
    armor_level: int = 0
    penalty: int = 0                # Armor penalty
    broken: bool = False            # Unusable until repaired

    @property
    def is_weapon(self) -> bool:
        return self.type in (ItemType.CLOSE, ItemType.RANGED)


class Talent(BaseModel):
    """A talent that may grant bonus dice to one skill while active."""
    id: str
    name: str
    bonus: int = 0
    skill_affected: str | None = None


class Character(BaseModel):
    """A player character sheet."""
    id: str
    name: str
    attributes: dict[str, int] = {}     # Attribute name -> value
    skills: dict[str, int] = {}         # Skill name -> rank
    health: int = DEFAULT_MAX_HEALTH
    max_health: int = DEFAULT_MAX_HEALTH
    stress: int = 0
    max_stress: int = DEFAULT_MAX_STRESS
    inventory: list[InventoryItem] = []
    talents: list[Talent] = []
    active_talent_ids: list[str] = []

    def equipped_weapon(self) -> InventoryItem | None:
        """First equipped weapon that isn't broken, if any."""
        for item in self.inventory:
            if item.equipped and item.is_weapon and not item.broken:
                return item
        return None

    def equipped_armor(self) -> InventoryItem | None:
        for item in self.inventory:
            if item.equipped and item.type == ItemType.ARMOR:
                return item
        return None


class NPC(BaseModel):
    """A non-player character, rated by skill expertise instead of ranks."""
    id: str
    name: str
    health: int = DEFAULT_MAX_HEALTH
    max_health: int = DEFAULT_MAX_HEALTH
    skill_expertise: dict[str, SkillExpertise] = {}
    damage: int = DEFAULT_WEAPON_DAMAGE
