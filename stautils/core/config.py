from __future__ import annotations

from pathlib import Path

########## Core Config ##########
# Houses runtime constants for the STA utilities.

########## Variable Controls ##########
# All tweakable knobs live here so you can tune behavior without code changes.

# Warp solver (TNG inverse)
WARP_SOLVER_MAX_ITERATIONS: int = 50
WARP_SOLVER_TOLERANCE: float = 1e-9
WARP_SOLVER_DERIVATIVE_STEP: float = 1e-8
WARP_SOLVER_MIN_DERIVATIVE: float = 1e-15
WARP_SOLVER_RESEED: float = 9.5  # start inside the table zone
WARP_SOLVER_INNER_MAX: float = 9.999  # iteration clamp, keeps the sample point below warp 10

# Warp limits per formula
TNG_MIN_WARP: float = 1.0
TNG_MAX_WARP: float = 9.99
TNG_INFINITE_WARP: float = 10.0
TOS_MAX_WARP: float = 100.0

# Stardate (TNG)
STARDATE_ORIGIN_ISO: str = "2318-07-05T12:00:00"
STARDATE_MS_PER_UNIT: float = 34367056.4

# Journal backlinks
FLAG_SCOPE: str = "sta-utils"
FLAG_REFERENCES: str = "references"
FLAG_REFERENCED_BY: str = "referencedBy"
SYNC_FLAG_MARKER: str = "-=sync"
SYNC_VERSION: int = 3
BACKLINKS_ENABLED: bool = True
BACKLINKS_REBUILD_ON_SAVE: bool = True
BACKLINKS_HEADING_TAG: str = "h2"
BACKLINKS_MIN_PERMISSION: int = 1  # LIMITED
BACKLINKS_DEBUG: bool = False
BACKLINKS_HEADING_TEXT: str = "Linked from"

# Ownership levels mirrored from the host
OWNERSHIP_NONE: int = 0
OWNERSHIP_LIMITED: int = 1
OWNERSHIP_OBSERVER: int = 2
OWNERSHIP_OWNER: int = 3

# UI labels (no i18n layer)
WARP_ENTER_TWO_VALUES: str = "Enter any two values to calculate the third."
WARP_CANNOT_CALCULATE: str = "Cannot calculate with these values."
WARP_CALCULATOR_TITLE: str = "Warp Speed Calculator"
STARDATE_ENTER_DATE: str = "Enter a calendar date."
STARDATE_ENTER_STARDATE: str = "Enter a stardate."
STARDATE_INVALID_DATE: str = "Invalid date."
STARDATE_CALCULATOR_TITLE: str = "Stardate Calculator"

# Logging and debug
LOG_TEXT_ENABLED: bool = True  # toggle human-readable run log
LOG_TEXT_DIR: str = "logs"
LOG_TEXT_FILENAME: str = "stautils.log"
LOG_TEXT_MAX_LINES: int = 800

DB_FILE: str = str(Path("stautils/runtime_data/world_state.sqlite"))
DB_ECHO: bool = False

DEMO_WORLD_SEED: str = "world.json"
STREAMLIT_GRAPH_SEED: int = 7
