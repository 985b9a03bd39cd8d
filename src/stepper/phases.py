"""Coil energization sequences for 4-wire steppers.

Each row is a 4-bit nibble: bit i drives pins[i]. Rows are written below as
strings with pins[0] first, so "1001" energizes the first and last coil.
"""


def _nibbles(*rows: str) -> tuple[int, ...]:
    return tuple(int(row[::-1], 2) for row in rows)


# 1 cycle = 4 steps with lesser torque
SINGLE_PHASE = _nibbles("1000", "0100", "0010", "0001")

# 1 cycle = 4 steps with higher torque and current
DUAL_PHASE = _nibbles("1001", "1100", "0110", "0011")

# 1 cycle = 8 steps, finer position, less torque than dual phase
HALF_STEP = _nibbles(
    "1001",
    "1000",
    "1100",
    "0100",
    "0110",
    "0010",
    "0011",
    "0001",
)

PHASE_MODES = {
    "single": SINGLE_PHASE,
    "dual": DUAL_PHASE,
    "half": HALF_STEP,
}


def phase_table(mode) -> tuple[int, ...]:
    """Resolve a mode name ("single", "dual", "half") or pass a table through."""
    if isinstance(mode, str):
        try:
            return PHASE_MODES[mode.lower()]
        except KeyError:
            raise ValueError(
                f"Unknown phase mode '{mode}' (expected one of {sorted(PHASE_MODES)})"
            ) from None
    table = tuple(mode)
    if not table or any(not 0 <= row <= 0xF for row in table):
        raise ValueError("Phase table must be a non-empty sequence of 4-bit rows")
    return table


def levels(row: int) -> tuple[int, int, int, int]:
    """Split a nibble into the levels for pins[0..3]."""
    return tuple((row >> i) & 1 for i in range(4))
