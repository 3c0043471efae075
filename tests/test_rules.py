"""Tests for dice pool calculation, damage and opposed attacks."""

import random

from engine.actors import NpcActor, PlayerActor, actor_for
from engine.brawl import start_brawl
from engine.combat import add_character, add_npc, create_encounter
from engine.rules import (
    apply_damage,
    calculate_dice_pool,
    defense_difficulty,
    heal,
    resolve_opposed_attack,
)
from models.characters import (
    NPC,
    Character,
    InventoryItem,
    ItemType,
    RangeCategory,
    Skill,
    SkillExpertise,
    Talent,
)
from models.commands import Participant
from models.encounter import CombatantType, GameMode
from scripted import ScriptedRng


def _make_character(
    char_id: str = "pc1",
    strength: int = 2,
    agility: int = 2,
    empathy: int = 2,
    skills: dict | None = None,
    stress: int = 0,
    health: int = 3,
    inventory: list | None = None,
) -> Character:
    """Helper to create a test character."""
    return Character(
        id=char_id,
        name=f"Char_{char_id}",
        attributes={"Strength": strength, "Agility": agility, "Wits": 2, "Empathy": empathy},
        skills=skills or {},
        stress=stress,
        health=health,
        inventory=inventory or [],
    )


def _bat(damage: int = 2, bonus: int = 0) -> InventoryItem:
    return InventoryItem(
        id="bat", name="Baseball Bat", type=ItemType.CLOSE,
        bonus=bonus, damage=damage, equipped=True,
    )


def _make_npc(npc_id: str = "npc1", health: int = 3, **expertise) -> NPC:
    return NPC(
        id=npc_id,
        name=f"NPC_{npc_id}",
        health=health,
        max_health=3,
        skill_expertise=expertise,
    )


def _fight(
    character: Character,
    npc: NPC,
    mode: GameMode = GameMode.CAMPAIGN,
    pc_range: RangeCategory = RangeCategory.SHORT,
    npc_range: RangeCategory = RangeCategory.SHORT,
):
    """Helper: an encounter with one PC against one NPC, brawl started."""
    enc = create_encounter("test", mode=mode)
    add_character(enc, character)
    add_npc(enc, npc)
    start_brawl(enc, [
        Participant(id=character.id, type=CombatantType.PC, team="A", range=pc_range),
        Participant(id=npc.id, type=CombatantType.NPC, team="B", range=npc_range),
    ])
    return enc, enc.brawl.get(character.id), enc.brawl.get(npc.id)


class TestCalculateDicePool:
    """Tests for calculate_dice_pool()."""

    def test_attribute_plus_skill(self):
        char = _make_character(agility=3, skills={"Mobility": 2}, stress=2)
        pool = calculate_dice_pool(char, Skill.MOBILITY)
        assert pool.base_dice_pool == 5
        assert pool.stress_dice_pool == 2

    def test_accepts_plain_skill_names(self):
        char = _make_character(agility=3, skills={"Mobility": 2})
        assert calculate_dice_pool(char, "Mobility").base_dice_pool == 5

    def test_hurt_dice_clamped(self):
        """Strength 2 + Close Combat 1 + bat +1 with -5 dice leaves one die."""
        char = _make_character(skills={"Close Combat": 1}, inventory=[_bat(bonus=1)])
        pool = calculate_dice_pool(char, Skill.CLOSE_COMBAT, help_dice=-5)
        assert pool.base_dice_pool == 1

    def test_weapon_bonus_applies_to_its_combat_skill(self):
        char = _make_character(skills={"Close Combat": 1}, inventory=[_bat(bonus=1)])
        assert calculate_dice_pool(char, Skill.CLOSE_COMBAT).base_dice_pool == 4
        assert calculate_dice_pool(char, Skill.RANGED_COMBAT).base_dice_pool == 2

    def test_gear_with_named_skill(self):
        kit = InventoryItem(
            id="kit", name="Medkit", bonus=2, skill_affected="Medicine", equipped=True,
        )
        char = _make_character(empathy=3, inventory=[kit])
        assert calculate_dice_pool(char, Skill.MEDICINE).base_dice_pool == 5

    def test_unequipped_and_broken_gear_ignored(self):
        loose = _bat(bonus=1).model_copy(update={"equipped": False})
        broken = _bat(bonus=1).model_copy(update={"id": "bat2", "broken": True})
        char = _make_character(inventory=[loose, broken])
        assert calculate_dice_pool(char, Skill.CLOSE_COMBAT).base_dice_pool == 2

    def test_only_active_talents_count(self):
        char = _make_character(agility=2)
        char.talents = [
            Talent(id="t1", name="Parkour", bonus=1, skill_affected="Mobility"),
            Talent(id="t2", name="Sprinter", bonus=2, skill_affected="Mobility"),
        ]
        char.active_talent_ids = ["t1"]
        assert calculate_dice_pool(char, Skill.MOBILITY).base_dice_pool == 3

    def test_help_dice_capped(self):
        char = _make_character(agility=2)
        assert calculate_dice_pool(char, Skill.MOBILITY, help_dice=5).base_dice_pool == 5

    def test_unknown_skill_still_rolls_one_die(self):
        char = _make_character()
        pool = calculate_dice_pool(char, "Juggling")
        assert pool.base_dice_pool == 1

    def test_pool_never_below_one(self):
        char = _make_character(strength=1, agility=1)
        for skill in Skill:
            for help_dice in range(-10, 10):
                assert calculate_dice_pool(char, skill, help_dice).base_dice_pool >= 1


class TestActors:
    """Tests for the PC and NPC rollable actors."""

    def test_npc_pool_by_expertise(self):
        npc = _make_npc(**{
            "Close Combat": SkillExpertise.MASTER,
            "Mobility": SkillExpertise.EXPERT,
            "Force": SkillExpertise.TRAINED,
        })
        enc, _, npc_c = _fight(_make_character(), npc)
        actor = actor_for(enc, npc_c)
        assert isinstance(actor, NpcActor)
        pool = actor.dice_pool(Skill.CLOSE_COMBAT)
        assert pool.base_dice_pool == 10
        assert pool.stress_dice_pool == 0
        assert actor.dice_pool(Skill.MOBILITY).base_dice_pool == 8
        assert actor.dice_pool(Skill.FORCE).base_dice_pool == 5
        assert actor.dice_pool(Skill.STEALTH).base_dice_pool == 4

    def test_pc_actor_uses_character_sheet(self):
        enc, pc, _ = _fight(_make_character(skills={"Close Combat": 1}, stress=1), _make_npc())
        actor = actor_for(enc, pc)
        assert isinstance(actor, PlayerActor)
        assert actor.dice_pool(Skill.CLOSE_COMBAT).base_dice_pool == 3
        assert actor.dice_pool(Skill.CLOSE_COMBAT).stress_dice_pool == 1

    def test_missing_record_gives_no_actor(self):
        enc, pc, _ = _fight(_make_character(), _make_npc())
        del enc.characters[pc.id]
        assert actor_for(enc, pc) is None

    def test_pc_stress_capped(self):
        enc, pc, _ = _fight(_make_character(stress=4), _make_npc())
        actor = actor_for(enc, pc)
        assert actor.add_stress(3) == 5


class TestDefenseDifficulty:
    """Tests for defense_difficulty()."""

    def test_tiers(self):
        assert defense_difficulty(SkillExpertise.NONE) == 1
        assert defense_difficulty(SkillExpertise.TRAINED) == 1
        assert defense_difficulty(SkillExpertise.EXPERT) == 2
        assert defense_difficulty(SkillExpertise.MASTER) == 3


class TestApplyDamage:
    """Tests for apply_damage() and heal()."""

    def test_damage_syncs_record(self):
        enc, pc, _ = _fight(_make_character(health=3), _make_npc())
        assert apply_damage(enc, pc, 2) == 1
        assert pc.health == 1
        assert enc.characters[pc.id].health == 1

    def test_health_floors_at_zero(self):
        enc, _, npc = _fight(_make_character(), _make_npc(health=2))
        assert apply_damage(enc, npc, 5) == 0
        assert enc.npcs[npc.id].health == 0
        assert enc.event_log[-1].kind == "broken"

    def test_heal_capped_at_max(self):
        enc, pc, _ = _fight(_make_character(health=1), _make_npc())
        assert heal(enc, pc, 5) == 2
        assert pc.health == 3
        assert enc.characters[pc.id].health == 3


class TestResolveOpposedAttack:
    """Tests for resolve_opposed_attack()."""

    def test_margin_adds_damage(self):
        """3 successes against 1 with a damage-2 weapon deals 3."""
        char = _make_character(skills={"Close Combat": 1}, inventory=[_bat(damage=2)])
        enc, pc, npc = _fight(char, _make_npc())
        rng = ScriptedRng([6, 6, 6, 6, 2, 3, 4])
        damage = resolve_opposed_attack(enc, pc, npc, rng)
        assert damage == 3
        assert npc.health == 0
        assert enc.npcs["npc1"].health == 0
        assert pc.has_acted is True

    def test_single_margin_deals_weapon_damage(self):
        char = _make_character(skills={"Close Combat": 1}, inventory=[_bat(damage=2)])
        enc, pc, npc = _fight(char, _make_npc())
        damage = resolve_opposed_attack(enc, pc, npc, ScriptedRng([6, 2, 2, 2, 2, 2, 2]))
        assert damage == 2
        assert npc.health == 1

    def test_tie_hits_both(self):
        char = _make_character(skills={"Close Combat": 1}, inventory=[_bat(damage=2)])
        enc, pc, npc = _fight(char, _make_npc())
        damage = resolve_opposed_attack(enc, pc, npc, ScriptedRng([6, 2, 3, 6, 2, 3, 4]))
        assert damage == 2
        assert npc.health == 1
        assert pc.health == 2
        assert enc.characters["pc1"].health == 2
        assert any(e.kind == "exchange" for e in enc.event_log)

    def test_no_successes_is_a_miss(self):
        char = _make_character(skills={"Close Combat": 1})
        enc, pc, npc = _fight(char, _make_npc())
        damage = resolve_opposed_attack(enc, pc, npc, ScriptedRng([2, 2, 3, 2, 2, 3, 4]))
        assert damage == 0
        assert npc.health == 3
        assert pc.health == 3
        assert enc.event_log[-1].kind == "miss"

    def test_solo_npc_defends_with_difficulty(self):
        char = _make_character(skills={"Close Combat": 1}, inventory=[_bat(damage=2)])
        npc = _make_npc(**{"Close Combat": SkillExpertise.EXPERT})
        enc, pc, npc_c = _fight(char, npc, mode=GameMode.SOLO)
        damage = resolve_opposed_attack(enc, pc, npc_c, ScriptedRng([6, 6, 6]))
        assert damage == 2
        assert any(e.kind == "difficulty" and e.details["difficulty"] == 2 for e in enc.event_log)

    def test_solo_pc_still_rolls_defence(self):
        npc = _make_npc(**{"Close Combat": SkillExpertise.NONE})
        enc, pc, npc_c = _fight(_make_character(), npc, mode=GameMode.SOLO)
        # NPC attack: 4 dice; PC defence: Strength 2 dice
        damage = resolve_opposed_attack(enc, npc_c, pc, ScriptedRng([6, 2, 2, 2, 2, 2]))
        assert damage == 1
        assert pc.health == 2

    def test_cover_costs_ranged_attacker_a_die(self):
        char = _make_character(agility=2, skills={"Ranged Combat": 1}, inventory=[_bat(damage=2)])
        enc, pc, npc = _fight(char, _make_npc(), pc_range=RangeCategory.LONG, npc_range=RangeCategory.LONG)
        npc.is_taking_cover = True
        rng = ScriptedRng([6, 6, 2, 2, 2, 2])
        damage = resolve_opposed_attack(enc, pc, npc, rng)
        attack_roll = next(e.roll for e in enc.event_log if e.kind == "roll" and e.actor_id == "pc1")
        assert attack_roll.base_dice_pool == 2
        assert attack_roll.skill == "Ranged Combat"
        assert damage == 3
        assert rng.faces == []

    def test_mess_up_can_break_weapon(self):
        char = _make_character(skills={"Close Combat": 1}, stress=1, inventory=[_bat(damage=2)])
        enc, pc, npc = _fight(char, _make_npc())
        # Attack 3 base + 1 stress, defence 4, break check d6
        rng = ScriptedRng([6, 2, 3, 1, 2, 2, 2, 2, 1])
        damage = resolve_opposed_attack(enc, pc, npc, rng)
        assert damage == 2
        assert enc.characters["pc1"].inventory[0].broken is True
        assert enc.event_log[-1].kind == "weapon_broken"

    def test_mess_up_weapon_survives_other_faces(self):
        char = _make_character(skills={"Close Combat": 1}, stress=1, inventory=[_bat(damage=2)])
        enc, pc, npc = _fight(char, _make_npc())
        rng = ScriptedRng([6, 2, 3, 1, 2, 2, 2, 2, 4])
        resolve_opposed_attack(enc, pc, npc, rng)
        assert enc.characters["pc1"].inventory[0].broken is False

    def test_dead_defender_skipped(self):
        enc, pc, npc = _fight(_make_character(), _make_npc(health=0))
        damage = resolve_opposed_attack(enc, pc, npc, random.Random(42))
        assert damage == 0
        assert enc.event_log[-1].kind == "skipped"
