"""
Engine settings read from the environment (.env supported).

HEATGEN_PLACEMENT_RETRY_FACTOR   placement attempts per pilot before giving up (default 4)
HEATGEN_INTERFERENCE_RANGE_MHZ   channels closer than this interfere (default 15)
HEATGEN_POSITION_POINTS          comma separated points per finishing position
HEATGEN_DNF_POINTS               points awarded for a DNF
HEATGEN_DROP_WORST_ROUND         drop each pilot's worst round from totals
HEATGEN_CHASE_THE_ACE_LIMIT      wins needed to end a chase-the-ace stage
"""

import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_int_list(name: str, default: str) -> List[int]:
    raw = os.getenv(name, default)
    return [int(part) for part in raw.split(",") if part.strip()]


PLACEMENT_RETRY_FACTOR = int(os.getenv("HEATGEN_PLACEMENT_RETRY_FACTOR", "4"))
INTERFERENCE_RANGE_MHZ = int(os.getenv("HEATGEN_INTERFERENCE_RANGE_MHZ", "15"))

POSITION_POINTS = _env_int_list("HEATGEN_POSITION_POINTS", "10,8,6,4,2,0")
DNF_POINTS = int(os.getenv("HEATGEN_DNF_POINTS", "0"))
DROP_WORST_ROUND = _env_bool("HEATGEN_DROP_WORST_ROUND", "false")

CHASE_THE_ACE_LIMIT = int(os.getenv("HEATGEN_CHASE_THE_ACE_LIMIT", "2"))
