"""FastAPI app entry point for the Walker Table server."""

import logging
import random

from fastapi import FastAPI

from api.encounter import router as encounter_router
from api.rolls import router as rolls_router
from config import ENCOUNTER_ID, ENCOUNTER_NAME, GAME_MODE, LOG_LEVEL, SAVE_FILE
from engine.combat import create_encounter, end_combat, load_encounter, save_encounter
from engine.session import EncounterSession
from models.encounter import EncounterStatus, GameMode

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(save_file: str = SAVE_FILE, rng: random.Random | None = None) -> FastAPI:
    """Build the app around the saved encounter, or a fresh one.

    Args:
        save_file: Where the encounter is loaded from and persisted to.
        rng: Optional Random instance for seeded/testing rolls.
    """
    app = FastAPI(
        title="Walker Table Server",
        description="Dice pools and combat resolution for Year Zero Engine survival tables",
        version="0.1.0",
    )

    encounter = load_encounter(save_file)
    if encounter is not None:
        logger.info("Loaded encounter %s from %s", encounter.encounter_id, save_file)
        # A finished fight left over from the last run is archived
        if encounter.status == EncounterStatus.COMPLETED:
            end_combat(encounter)
            save_encounter(encounter, save_file)
    else:
        encounter = create_encounter(ENCOUNTER_ID, name=ENCOUNTER_NAME, mode=GameMode(GAME_MODE))

    app.state.rng = rng or random.Random()
    app.state.session = EncounterSession(
        encounter,
        rng=app.state.rng,
        on_change=lambda updated: save_encounter(updated, save_file),
    )

    app.include_router(rolls_router, prefix="/rolls", tags=["Rolls"])
    app.include_router(encounter_router, prefix="/encounter", tags=["Encounter"])

    @app.get("/")
    def root() -> dict:
        """Root endpoint returning server info."""
        return {"name": "Walker Table Server", "version": "0.1.0", "status": "running"}

    @app.get("/health")
    def health() -> dict:
        """Health check endpoint."""
        return {"healthy": True}

    return app


app = create_app()
