"""Rollable actors: one capability over player characters and NPCs.

Resolvers never branch on whether a combatant is a PC or an NPC. They ask
the encounter for an actor and call it:

    actor = actor_for(encounter, combatant)
    result = actor.roll(Skill.MOBILITY, rng=rng)

PlayerActor builds pools from the character sheet (attribute, skill rank,
gear, talents, stress). NpcActor builds them from skill expertise and, in
solo play, defends with a fixed difficulty instead of rolling.
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from config import DEFAULT_WEAPON_DAMAGE, WEAPON_BREAK_FACE
from engine.dice import DicePool, RollResult, apply_help_dice, roll_d6, roll_skill_check
from engine.rules import calculate_dice_pool, defense_difficulty
from models.characters import NPC, NPC_DICE_POOLS, Character, SkillExpertise, skill_name
from models.encounter import Combatant, CombatantType

if TYPE_CHECKING:
    from models.encounter import Encounter

logger = logging.getLogger(__name__)


class RollableActor(ABC):
    """Something that can roll skill checks in combat."""

    is_pc: bool = False

    def __init__(self, combatant: Combatant) -> None:
        self.combatant = combatant

    @property
    def name(self) -> str:
        return self.combatant.name

    @abstractmethod
    def dice_pool(self, skill: str, help_dice: int = 0) -> DicePool:
        """Dice pool for a skill with help/hurt dice applied."""

    @abstractmethod
    def weapon_damage(self) -> int:
        """Damage dealt on a hit."""

    @abstractmethod
    def defend(
        self,
        skill: str,
        solo: bool = False,
        rng: random.Random | None = None,
    ) -> tuple[int, RollResult | None]:
        """Defence successes against an attack, and the roll if one was made."""

    def roll(
        self,
        skill: str,
        help_dice: int = 0,
        rng: random.Random | None = None,
    ) -> RollResult:
        """Roll a skill check with optional help (positive) or hurt dice."""
        pool = self.dice_pool(skill)
        return roll_skill_check(
            pool.base_dice_pool,
            pool.stress_dice_pool,
            skill,
            help_dice_count=help_dice,
            rng=rng,
        )

    def set_health(self, health: int) -> None:
        self.combatant.health = health

    def add_stress(self, amount: int) -> int:
        """Add stress; returns the new stress level."""
        return 0

    def on_messed_up(self, rng: random.Random | None = None) -> str | None:
        """Consequence of a complication. Returns the broken weapon's name, if any."""
        return None


class PlayerActor(RollableActor):
    """A player character backed by a full character sheet."""

    is_pc = True

    def __init__(self, combatant: Combatant, character: Character) -> None:
        super().__init__(combatant)
        self.character = character

    def dice_pool(self, skill: str, help_dice: int = 0) -> DicePool:
        return calculate_dice_pool(self.character, skill, help_dice)

    def weapon_damage(self) -> int:
        weapon = self.character.equipped_weapon()
        if weapon is None or not weapon.damage:
            return DEFAULT_WEAPON_DAMAGE
        return weapon.damage

    def defend(
        self,
        skill: str,
        solo: bool = False,
        rng: random.Random | None = None,
    ) -> tuple[int, RollResult | None]:
        # PCs always roll, even in solo play.
        result = self.roll(skill, rng=rng)
        return result.successes, result

    def set_health(self, health: int) -> None:
        super().set_health(health)
        self.character.health = health

    def add_stress(self, amount: int) -> int:
        self.character.stress = min(
            self.character.max_stress, self.character.stress + amount,
        )
        return self.character.stress

    def on_messed_up(self, rng: random.Random | None = None) -> str | None:
        """Roll a d6; on a 1 the equipped weapon breaks."""
        weapon = self.character.equipped_weapon()
        if weapon is None:
            return None
        check = roll_d6("Weapon Break Check", rng=rng)
        if check.key != WEAPON_BREAK_FACE:
            return None
        weapon.broken = True
        logger.info("%s's %s broke", self.character.name, weapon.name)
        return weapon.name


class NpcActor(RollableActor):
    """An NPC rated by skill expertise. NPCs carry no stress dice."""

    def __init__(self, combatant: Combatant, npc: NPC) -> None:
        super().__init__(combatant)
        self.npc = npc

    def expertise(self, skill: str) -> SkillExpertise:
        return self.npc.skill_expertise.get(skill_name(skill), SkillExpertise.NONE)

    def dice_pool(self, skill: str, help_dice: int = 0) -> DicePool:
        base = NPC_DICE_POOLS[self.expertise(skill)]
        base, _ = apply_help_dice(base, help_dice)
        return DicePool(base_dice_pool=base, stress_dice_pool=0)

    def weapon_damage(self) -> int:
        return self.npc.damage or DEFAULT_WEAPON_DAMAGE

    def defend(
        self,
        skill: str,
        solo: bool = False,
        rng: random.Random | None = None,
    ) -> tuple[int, RollResult | None]:
        if solo:
            return defense_difficulty(self.expertise(skill)), None
        result = self.roll(skill, rng=rng)
        return result.successes, result

    def set_health(self, health: int) -> None:
        super().set_health(health)
        self.npc.health = health


def actor_for(encounter: Encounter, combatant: Combatant) -> RollableActor | None:
    """Build the actor for a combatant from the encounter roster.

    Returns:
        The actor, or None if the underlying record is missing.
    """
    if combatant.type == CombatantType.PC:
        character = encounter.characters.get(combatant.id)
        if character is None:
            return None
        return PlayerActor(combatant, character)
    npc = encounter.npcs.get(combatant.id)
    if npc is None:
        return None
    return NpcActor(combatant, npc)


def roster_actor(encounter: Encounter, actor_id: str) -> RollableActor | None:
    """Actor for any character or NPC on the roster, in combat or not.

    A combatant in the running fight is used as-is so health changes reach
    both the combatant and its record.
    """
    combatant = encounter.get_combatant(actor_id)
    if combatant is not None:
        return actor_for(encounter, combatant)

    character = encounter.characters.get(actor_id)
    if character is not None:
        combatant = Combatant(
            id=character.id,
            type=CombatantType.PC,
            name=character.name,
            health=character.health,
            max_health=character.max_health,
        )
        return PlayerActor(combatant, character)
    npc = encounter.npcs.get(actor_id)
    if npc is not None:
        combatant = Combatant(
            id=npc.id,
            type=CombatantType.NPC,
            name=npc.name,
            health=npc.health,
            max_health=npc.max_health,
        )
        return NpcActor(combatant, npc)
    return None
