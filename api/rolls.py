"""Dice endpoints: skill checks, raw pools, pushes, table rolls and odds."""

from typing import Literal

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from api.encounter import dispatch
from engine.dice import (
    PushNotAllowed,
    RollResult,
    TableRollResult,
    push_previous_roll,
    roll_d6,
    roll_d66,
    roll_d666,
    roll_skill_check,
    success_chance,
)
from models.commands import PushRoll, RollSkill

router = APIRouter()

TABLE_ROLLERS = {
    "d6": roll_d6,
    "d66": roll_d66,
    "d666": roll_d666,
}


class PoolRollRequest(BaseModel):
    """Request body for rolling a pool that isn't tied to a character."""
    base_dice_pool: int
    stress_dice_pool: int = 0
    skill: str = "Unskilled"
    help_dice: int = 0


class PushRequest(BaseModel):
    """Request body for pushing a roll.

    With an actor_id the push is logged on the encounter and a player
    character takes one stress. Without one, only the dice are re-rolled.
    """
    roll: RollResult
    actor_id: str | None = None


class TableRollRequest(BaseModel):
    table_name: str
    dice: Literal["d6", "d66", "d666"] = "d66"


def _roster_has(request: Request, actor_id: str) -> bool:
    encounter = request.app.state.session.encounter
    return actor_id in encounter.characters or actor_id in encounter.npcs


@router.post("/skill", response_model=RollResult)
def roll_skill(command: RollSkill, request: Request) -> RollResult:
    """Roll a skill for a character or NPC on the roster."""
    if not _roster_has(request, command.actor_id):
        raise HTTPException(status_code=404, detail=f"No character or NPC with id '{command.actor_id}'")
    _, events = dispatch(request, command)
    return events[-1].roll


@router.post("/pool", response_model=RollResult)
def roll_pool(body: PoolRollRequest, request: Request) -> RollResult:
    """Roll a raw base/stress pool with optional help or hurt dice."""
    if body.base_dice_pool < 0 or body.stress_dice_pool < 0:
        raise HTTPException(status_code=400, detail="Dice pools cannot be negative")
    return roll_skill_check(
        body.base_dice_pool,
        body.stress_dice_pool,
        body.skill,
        help_dice_count=body.help_dice,
        rng=request.app.state.rng,
    )


@router.post("/push", response_model=RollResult)
def push_roll(body: PushRequest, request: Request) -> RollResult:
    """Push a failed roll: every die re-rolled with one extra stress die."""
    if body.actor_id is None:
        try:
            return push_previous_roll(body.roll, rng=request.app.state.rng)
        except PushNotAllowed as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    if not _roster_has(request, body.actor_id):
        raise HTTPException(status_code=404, detail=f"No character or NPC with id '{body.actor_id}'")
    _, events = dispatch(request, PushRoll(actor_id=body.actor_id, roll=body.roll))
    return events[-1].roll


@router.post("/table", response_model=TableRollResult)
def roll_table(body: TableRollRequest, request: Request) -> TableRollResult:
    """Roll a d6, d66 or d666 for a lookup table."""
    return TABLE_ROLLERS[body.dice](body.table_name, rng=request.app.state.rng)


@router.get("/chance")
def get_success_chance(
    base: int = Query(ge=0),
    stress: int = Query(0, ge=0),
) -> dict:
    """Chance of at least one success, now and if pushed."""
    initial, pushed = success_chance(base, stress)
    return {"base_dice_pool": base, "stress_dice_pool": stress, "initial": initial, "pushed": pushed}
