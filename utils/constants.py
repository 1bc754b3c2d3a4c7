import json
from config.paths import CONSTANTS_PATH

"""
Loads configuration constants from config/constants.json and exposes them as module-level variables.
Edit constants.json to change values; import from utils.constants to use in code.
"""

with open(CONSTANTS_PATH, "r", encoding="utf-8") as f:
    _constants = json.load(f)

# Expose constants as variables
MINUTES_PER_DAY = _constants["MINUTES_PER_DAY"]
SLOT_MINUTES = _constants["SLOT_MINUTES"]
VALUE_ORDER = _constants["VALUE_ORDER"]

SOLVER_TIMEOUT_SECONDS = _constants["SOLVER_TIMEOUT_SECONDS"]
DIAGNOSIS_TIMEOUT_SECONDS = _constants["DIAGNOSIS_TIMEOUT_SECONDS"]
DIAGNOSIS_SEED = _constants["DIAGNOSIS_SEED"]
MAX_WORKERS = _constants["MAX_WORKERS"]

MAX_CHAIN_DEPTH = _constants["MAX_CHAIN_DEPTH"]

WEEKDAY_NAMES = _constants["WEEKDAY_NAMES"]
COMPARISONS = _constants["COMPARISONS"]
CONSTRAINT_TYPES = _constants["CONSTRAINT_TYPES"]

DAY_LEVEL_CONSTRAINTS = {
    "mustBeOnSameDay",
    "cantBeOnSameDay",
    "mustBeNextTo",
    "cantBeNextTo",
}
ORDERING_CONSTRAINTS = {"mustBeBefore", "mustBeAfter"}

# day reach within which every destination instance is paired with a source
PAIR_REACH = {
    "cantBeOnSameDay": 0,
    "cantBeNextTo": 1,
    "mustBeBefore": 0,
    "mustBeAfter": 0,
}
# days apart two timed instances can be and still collide across midnight
OVERLAP_REACH = 1
