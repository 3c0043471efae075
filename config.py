"""Server-wide configuration constants for the Walker Table server."""

import os

DATA_DIR = os.environ.get("DATA_DIR", ".")  # Persistent data directory
SAVE_FILE = os.path.join(DATA_DIR, "encounter_state.json")
ENCOUNTER_ID = "walker-table"   # Fixed encounter ID
ENCOUNTER_NAME = "Walker Table"
GAME_MODE = os.environ.get("GAME_MODE", "Campaign")  # Campaign, Survival or Solo
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Dice rules
MAX_HELP_DICE = 3           # Help/hurt dice are clamped to +/-3
SUCCESS_FACE = 6
COMPLICATION_FACE = 1       # Only counts on stress dice

# Health and stress
DEFAULT_MAX_HEALTH = 3
DEFAULT_MAX_STRESS = 5
DEFAULT_WEAPON_DAMAGE = 1
WEAPON_BREAK_FACE = 1       # d6 face that breaks a weapon after a mess-up

# Swarm rules
MAX_THREAT_LEVEL = 6
MAX_SWARM_SIZE = 6
SWARM_DEFEAT_SIZE = 3       # A beaten swarm at or below this size is gone
