import os
import logging

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ============================================================
# ENVIRONMENT
# ============================================================

# Load the .env file immediately so overrides below see it
load_dotenv()


def _env_int(name, default):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default


# ============================================================
# SIMULATION PARAMETERS
# ============================================================
TARGET_AGE = _env_int("PROPOSAL_TARGET_AGE", 95)

MC_SIMULATIONS = _env_int("PROPOSAL_MC_SIMULATIONS", 100)

# None means a fresh, unseeded generator per simulation run
MC_RANDOM_SEED = _env_int("PROPOSAL_MC_SEED", None)

# ============================================================
# RETURN WINDOWS
# ============================================================
ROLLING_WINDOW_MONTHS = _env_int("PROPOSAL_ROLLING_WINDOW", 12)

# Trailing periods reported in the performance table (label -> years)
RETURN_PERIODS = {
    "1 Year": 1,
    "3 Year": 3,
    "5 Year": 5,
    "10 Year": 10,
}

# ============================================================
# GLOBAL COLOR PALETTE
# ============================================================
GLOBAL_PALETTE = [
    "#003365",  # proposal navy
    "#8C9CB1",  # soft gray-blue
    "#10B981",  # secondary green
    "#C0504D",  # muted red
    "#D79E9C",  # soft red-gray
    "#9BBB59",  # olive green
    "#4F81BD",  # corporate blue
    "#F2C200",  # muted gold (accent)
]
