"""Tests for swarm combat against walkers."""

import pytest

from engine.combat import add_character, create_encounter
from engine.swarm import (
    apply_swarm_consequence,
    resolve_swarm_round,
    resolve_walker_attack,
    select_swarm_skill,
    start_swarm,
)
from models.characters import Character, InventoryItem, ItemType, Skill
from models.commands import Participant
from models.encounter import CombatantType, EncounterStatus, GameMode, SwarmConsequence
from scripted import ScriptedRng


def _make_character(
    char_id: str,
    agility: int = 2,
    mobility: int = 1,
    stress: int = 0,
    health: int = 3,
) -> Character:
    """Helper to create a test survivor."""
    return Character(
        id=char_id,
        name=f"Char_{char_id}",
        attributes={"Strength": 2, "Agility": agility, "Wits": 2, "Empathy": 2},
        skills={"Mobility": mobility},
        stress=stress,
        health=health,
    )


def _make_swarm(
    characters: list[Character],
    threat_level: int = 2,
    swarm_size: int = 3,
    mode: GameMode = GameMode.CAMPAIGN,
):
    """Helper: an encounter with a swarm already closing in."""
    enc = create_encounter("test", mode=mode)
    for char in characters:
        add_character(enc, char)
    start_swarm(
        enc,
        [Participant(id=c.id, type=CombatantType.PC) for c in characters],
        threat_level,
        swarm_size,
    )
    return enc


class TestStartSwarm:
    """Tests for start_swarm()."""

    def test_starts_with_threat_track(self):
        enc = _make_swarm([_make_character("pc1")], threat_level=2, swarm_size=3)
        assert enc.status == EncounterStatus.ACTIVE
        assert enc.swarm.needed_successes == 5
        assert enc.brawl is None

    def test_threat_out_of_range(self):
        enc = create_encounter("test")
        add_character(enc, _make_character("pc1"))
        with pytest.raises(ValueError, match="Threat level"):
            start_swarm(enc, [Participant(id="pc1", type=CombatantType.PC)], 7, 3)

    def test_size_out_of_range(self):
        enc = create_encounter("test")
        add_character(enc, _make_character("pc1"))
        with pytest.raises(ValueError, match="Swarm size"):
            start_swarm(enc, [Participant(id="pc1", type=CombatantType.PC)], 2, 0)


class TestSelectSwarmSkill:
    """Tests for select_swarm_skill()."""

    def test_selects_and_clears(self):
        enc = _make_swarm([_make_character("pc1")])
        assert select_swarm_skill(enc, "pc1", "Stealth")
        assert enc.swarm.get("pc1").selected_swarm_skill == "Stealth"
        assert select_swarm_skill(enc, "pc1", None)
        assert enc.swarm.get("pc1").selected_swarm_skill is None

    def test_unknown_combatant(self):
        enc = _make_swarm([_make_character("pc1")])
        assert not select_swarm_skill(enc, "ghost", "Stealth")
        assert enc.event_log[-1].kind == "rejected"


class TestResolveSwarmRound:
    """Tests for resolve_swarm_round()."""

    def test_loss_leaves_consequence_pending(self):
        enc = _make_swarm([_make_character("pc1"), _make_character("pc2")], threat_level=2, swarm_size=3)
        select_swarm_skill(enc, "pc1", Skill.MOBILITY)
        select_swarm_skill(enc, "pc2", Skill.MOBILITY)
        result = resolve_swarm_round(enc, ScriptedRng([6, 6, 2, 6, 6, 3]))
        assert result.successes == 4
        assert result.needed == 5
        assert result.is_win is False
        assert result.almost is True
        assert enc.swarm.pending_consequence is True

    def test_win_destroys_small_swarm(self):
        enc = _make_swarm([_make_character("pc1")], threat_level=0, swarm_size=1)
        select_swarm_skill(enc, "pc1", Skill.MOBILITY)
        result = resolve_swarm_round(enc, ScriptedRng([6, 2, 3]))
        assert result.is_win is True
        assert result.swarm_defeated is True
        assert enc.status == EncounterStatus.COMPLETED
        assert enc.swarm.swarm_size == 0

    def test_win_shrinks_large_swarm(self):
        enc = _make_swarm([_make_character("pc1", agility=4, mobility=2)], threat_level=0, swarm_size=4)
        select_swarm_skill(enc, "pc1", Skill.MOBILITY)
        result = resolve_swarm_round(enc, ScriptedRng([6, 6, 6, 6, 2, 2]))
        assert result.is_win is True
        assert result.swarm_defeated is False
        assert enc.swarm.swarm_size == 3
        assert enc.swarm.threat_level == 0
        assert enc.swarm.round == 2
        assert enc.status == EncounterStatus.ACTIVE

    def test_skills_cleared_after_round(self):
        enc = _make_swarm([_make_character("pc1")], threat_level=2, swarm_size=3)
        select_swarm_skill(enc, "pc1", Skill.MOBILITY)
        resolve_swarm_round(enc, ScriptedRng([2, 2, 2]))
        assert enc.swarm.get("pc1").selected_swarm_skill is None

    def test_refused_while_consequence_pending(self):
        enc = _make_swarm([_make_character("pc1")])
        enc.swarm.pending_consequence = True
        select_swarm_skill(enc, "pc1", Skill.MOBILITY)
        assert resolve_swarm_round(enc, ScriptedRng([])) is None
        assert enc.event_log[-1].kind == "rejected"

    def test_nobody_acting_refused(self):
        enc = _make_swarm([_make_character("pc1")])
        assert resolve_swarm_round(enc, ScriptedRng([])) is None

    def test_block_costs_mobility_a_success(self):
        enc = _make_swarm([_make_character("pc1")], threat_level=0, swarm_size=1)
        enc.swarm.block_active = True
        select_swarm_skill(enc, "pc1", Skill.MOBILITY)
        result = resolve_swarm_round(enc, ScriptedRng([6, 2, 3]))
        assert result.successes == 0
        assert result.is_win is False
        assert enc.swarm.block_active is False

    def test_mess_up_draws_walker_attack_even_on_win(self):
        enc = _make_swarm([_make_character("pc1", stress=1)], threat_level=0, swarm_size=1)
        select_swarm_skill(enc, "pc1", Skill.MOBILITY)
        # Round roll: 3 base + 1 stress. Dodge: 3 base + 1 stress, all fail. d66: 11
        rng = ScriptedRng([6, 2, 2, 1, 2, 2, 2, 2, 1, 1])
        result = resolve_swarm_round(enc, rng)
        assert result.is_win is True
        assert result.messed_up_ids == ["pc1"]
        assert enc.characters["pc1"].stress == 2
        assert rng.faces == []


class TestApplySwarmConsequence:
    """Tests for apply_swarm_consequence()."""

    def _lost(self, mode=GameMode.CAMPAIGN, threat_level=2, swarm_size=3, characters=None):
        enc = _make_swarm(characters or [_make_character("pc1")], threat_level, swarm_size, mode)
        enc.swarm.pending_consequence = True
        return enc

    def test_raise_threat(self):
        enc = self._lost()
        assert apply_swarm_consequence(enc, SwarmConsequence.RAISE_THREAT, ScriptedRng([])) == SwarmConsequence.RAISE_THREAT
        assert enc.swarm.threat_level == 3
        assert enc.swarm.pending_consequence is False

    def test_threat_capped(self):
        enc = self._lost(threat_level=6)
        apply_swarm_consequence(enc, SwarmConsequence.RAISE_THREAT, ScriptedRng([]))
        assert enc.swarm.threat_level == 6

    def test_raise_size_capped(self):
        enc = self._lost(swarm_size=6)
        apply_swarm_consequence(enc, SwarmConsequence.RAISE_SIZE, ScriptedRng([]))
        assert enc.swarm.swarm_size == 6

    def test_rolled_when_no_choice(self):
        enc = self._lost()
        assert apply_swarm_consequence(enc, None, ScriptedRng([2])) == SwarmConsequence.RAISE_THREAT
        assert enc.swarm.threat_level == 3

    def test_solo_always_rolls(self):
        enc = self._lost(mode=GameMode.SOLO)
        choice = apply_swarm_consequence(enc, SwarmConsequence.RAISE_THREAT, ScriptedRng([5]))
        assert choice == SwarmConsequence.RAISE_SIZE
        assert enc.swarm.swarm_size == 4
        assert enc.swarm.threat_level == 2

    def test_solo_block(self):
        enc = self._lost(mode=GameMode.SOLO, threat_level=4)
        apply_swarm_consequence(enc, None, ScriptedRng([6, 4]))
        assert enc.swarm.block_active is True

    def test_mass_attack_hits_everyone(self):
        enc = self._lost(
            threat_level=6,
            characters=[_make_character("pc1"), _make_character("pc2")],
        )
        # Threat 6 only allows a mass attack; both dodge
        apply_swarm_consequence(enc, SwarmConsequence.SWARM_ATTACK, ScriptedRng([6, 2, 2, 6, 2, 2]))
        dodgers = [e.actor_id for e in enc.event_log if e.kind == "dodge"]
        assert dodgers == ["pc1", "pc2"]

    def test_low_threat_single_attack(self):
        enc = self._lost(threat_level=1)
        apply_swarm_consequence(enc, SwarmConsequence.SWARM_ATTACK, ScriptedRng([6, 2, 2]))
        assert [e.kind for e in enc.event_log].count("walker_attack") == 1

    def test_nothing_pending(self):
        enc = _make_swarm([_make_character("pc1")])
        assert apply_swarm_consequence(enc, SwarmConsequence.RAISE_THREAT, ScriptedRng([])) is None
        assert enc.event_log[-1].kind == "rejected"


class TestResolveWalkerAttack:
    """Tests for resolve_walker_attack()."""

    def test_dodge(self):
        enc = _make_swarm([_make_character("pc1")])
        assert resolve_walker_attack(enc, enc.swarm.get("pc1"), ScriptedRng([6, 1, 1])) is None
        assert enc.characters["pc1"].health == 3

    def test_damage_roll(self):
        enc = _make_swarm([_make_character("pc1")])
        key = resolve_walker_attack(enc, enc.swarm.get("pc1"), ScriptedRng([1, 1, 1, 4, 3]))
        assert key == 43
        assert enc.characters["pc1"].health == 0

    def test_damage_and_stress(self):
        enc = _make_swarm([_make_character("pc1")])
        resolve_walker_attack(enc, enc.swarm.get("pc1"), ScriptedRng([1, 1, 1, 3, 4]))
        assert enc.characters["pc1"].health == 2
        assert enc.characters["pc1"].stress == 1

    def test_own_weapon_damage(self):
        char = _make_character("pc1")
        char.inventory = [
            InventoryItem(id="axe", name="Fire Axe", type=ItemType.CLOSE, damage=2, equipped=True),
        ]
        enc = _make_swarm([char])
        resolve_walker_attack(enc, enc.swarm.get("pc1"), ScriptedRng([1, 1, 1, 3, 3]))
        assert enc.characters["pc1"].health == 1

    def test_lethal(self):
        enc = _make_swarm([_make_character("pc1")])
        resolve_walker_attack(enc, enc.swarm.get("pc1"), ScriptedRng([1, 1, 1, 5, 5]))
        assert enc.characters["pc1"].health == 0
        assert enc.event_log[-1].kind == "killed"

    def test_stress_capped(self):
        enc = _make_swarm([_make_character("pc1", stress=5)])
        # Mobility 3 base + 5 stress dice, no sixes and no need for ones
        rng = ScriptedRng([2, 2, 2, 2, 2, 2, 2, 2, 1, 1])
        resolve_walker_attack(enc, enc.swarm.get("pc1"), rng)
        assert enc.characters["pc1"].stress == 5
