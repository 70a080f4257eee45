# =============================================================================
# State Key Encoding
# =============================================================================
"""
Canonical string keys for the Q-table.

Format:
    "<row>,<col>|<visit_mask>|t<time_bucket>|e<energy_bucket>|c<chores_done>"

e.g. "3,4|5|t6|e9|c1"

Every field of ObservedState is part of the key, so two states that
share a position but differ in visit mask, buckets or chores are valued
independently. The field prefixes keep the encoding unambiguous.
"""

from george_rl.environment.state import ObservedState
from george_rl.environment.world import State


def state_to_key(state: ObservedState) -> str:
    row, col = state.position
    return (
        f"{row},{col}|{state.visit_mask}"
        f"|t{state.time_bucket}|e{state.energy_bucket}|c{state.chores_done}"
    )


def key_to_position(key: str) -> State:
    """
    Recover the (row, col) of a state key.

    Raises ValueError for keys that don't start with "row,col".
    """
    pos = key.split("|", 1)[0]
    row, col = pos.split(",")
    return int(row), int(col)


def parse_state_key(key: str) -> ObservedState:
    """Full inverse of state_to_key."""
    pos, mask, time_part, energy_part, chores_part = key.split("|")
    row, col = pos.split(",")
    return ObservedState(
        position=(int(row), int(col)),
        visit_mask=int(mask),
        time_bucket=int(time_part[1:]),
        energy_bucket=int(energy_part[1:]),
        chores_done=int(chores_part[1:]),
    )
