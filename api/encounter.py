"""Roster, brawl, swarm and log endpoints for the shared encounter."""

from fastapi import APIRouter, HTTPException, Request

from engine.combat import add_character, add_npc
from engine.session import EncounterSession
from models.characters import NPC, Character
from models.commands import (
    ApplySwarmConsequence,
    Command,
    EndCombat,
    PlanAction,
    ResolvePhase,
    ResolveSwarmRound,
    SelectSwarmSkill,
    StartBrawl,
    StartSwarm,
)
from models.encounter import CombatEvent, Encounter

router = APIRouter()


def _get_session(request: Request) -> EncounterSession:
    """Get the singleton encounter session from app state."""
    return request.app.state.session


def dispatch(request: Request, command: Command) -> tuple[Encounter, list[CombatEvent]]:
    """Run a command through the session, mapping failures to HTTP errors.

    Setup errors and rejected commands become 400s carrying the reason.
    """
    session = _get_session(request)
    try:
        encounter, events = session.dispatch(command)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    rejected = [e.description for e in events if e.kind == "rejected"]
    if rejected:
        raise HTTPException(status_code=400, detail=" ".join(rejected))
    return encounter, events


def _update(encounter: Encounter, events: list[CombatEvent]) -> dict:
    return {
        "events": [event.model_dump(mode="json") for event in events],
        "encounter": encounter.model_dump(mode="json"),
    }


def _require_combatant(request: Request, combatant_id: str) -> None:
    encounter = _get_session(request).encounter
    if encounter.get_combatant(combatant_id) is None:
        raise HTTPException(status_code=404, detail=f"Combatant '{combatant_id}' not found")


@router.get("")
def get_encounter(request: Request) -> dict:
    """Get the whole encounter: roster, running fight and current log."""
    return _get_session(request).encounter.model_dump(mode="json")


@router.post("/characters")
def upsert_character(character: Character, request: Request) -> dict:
    """Add a character to the roster, or replace one with the same id."""
    session = _get_session(request)
    encounter = add_character(session.encounter.model_copy(deep=True), character)
    session.replace(encounter)
    return {"character_id": character.id, "message": f"{character.name} is at the table"}


@router.post("/npcs")
def upsert_npc(npc: NPC, request: Request) -> dict:
    """Add an NPC to the roster, or replace one with the same id."""
    session = _get_session(request)
    encounter = add_npc(session.encounter.model_copy(deep=True), npc)
    session.replace(encounter)
    return {"npc_id": npc.id, "message": f"{npc.name} is at the table"}


@router.get("/log")
def get_encounter_log(request: Request) -> list[dict]:
    """Get the event log for the current or most recent combat."""
    encounter = _get_session(request).encounter
    return [event.model_dump(mode="json") for event in encounter.event_log]


@router.get("/history")
def get_combat_history(request: Request) -> list[list[dict]]:
    """Get archived logs from all past combats."""
    encounter = _get_session(request).encounter
    return [
        [event.model_dump(mode="json") for event in combat]
        for combat in encounter.combat_log_history
    ]


@router.post("/brawl/start")
def start_brawl(command: StartBrawl, request: Request) -> dict:
    return _update(*dispatch(request, command))


@router.post("/brawl/plan")
def plan_action(command: PlanAction, request: Request) -> dict:
    """Declare a combatant's action for the current round."""
    _require_combatant(request, command.combatant_id)
    return _update(*dispatch(request, command))


@router.post("/brawl/resolve")
def resolve_phase(command: ResolvePhase, request: Request) -> dict:
    """Resolve the phase identified by round and phase index.

    Repeating a phase that was already resolved is harmless: nothing
    happens and no events are returned.
    """
    return _update(*dispatch(request, command))


@router.post("/swarm/start")
def start_swarm(command: StartSwarm, request: Request) -> dict:
    return _update(*dispatch(request, command))


@router.post("/swarm/skill")
def select_swarm_skill(command: SelectSwarmSkill, request: Request) -> dict:
    _require_combatant(request, command.combatant_id)
    return _update(*dispatch(request, command))


@router.post("/swarm/resolve")
def resolve_swarm_round(command: ResolveSwarmRound, request: Request) -> dict:
    return _update(*dispatch(request, command))


@router.post("/swarm/consequence")
def apply_swarm_consequence(command: ApplySwarmConsequence, request: Request) -> dict:
    return _update(*dispatch(request, command))


@router.post("/end")
def end_combat(request: Request) -> dict:
    """End the running fight and archive its log."""
    return _update(*dispatch(request, EndCombat()))
