"""
Energy Curves: Target energy level over the course of a set.

- Progress is accumulated duration / target duration (may pass 1.0)
- Each curve maps progress to an integer energy level
- Energy flow scores how gently a transition moves between levels
"""

import logging
import math
from typing import Optional

logger = logging.getLogger(__name__)

ENERGY_CURVES = ("standard", "buildup", "plateau", "cooldown")


def target_energy(progress: float, curve: str = "standard") -> int:
    """
    Compute the ideal energy level for the current mix position.

    Curves:
    - buildup:  1 → 5 linear ramp, capped at 5
    - plateau:  fast ramp over the first 20%, hold at 4, fast wind-down
                over the last 20%
    - cooldown: 5 → 1 linear decay, floored at 1
    - standard: gradual rise over the first 30%, peak (4) in the middle,
                gradual decline over the last 30%

    Args:
        progress: Progress through the mix (0.0 = start, 1.0 = target reached)
        curve: Curve name; unknown names use "standard"

    Returns:
        Target energy level
    """
    if curve == "buildup":
        return min(5, math.floor(1 + progress * 4))

    if curve == "plateau":
        if progress < 0.2:
            return math.floor(1 + progress * 10)
        if progress > 0.8:
            return math.floor(5 - (progress - 0.8) * 10)
        return 4

    if curve == "cooldown":
        return max(1, math.floor(5 - progress * 4))

    if curve != "standard":
        logger.debug(f"Unknown energy curve {curve!r}; using standard")

    if progress < 0.3:
        return math.floor(2 + progress * 6)
    if progress > 0.7:
        return math.floor(4 - (progress - 0.7) * 6)
    return 4


def energy_flow_score(energy: int, previous_energy: Optional[int]) -> float:
    """
    Score an energy change between consecutive tracks.

    Args:
        energy: Energy level of the incoming track
        previous_energy: Energy level of the outgoing track, or None for
            the opening track

    Returns:
        1.0 for a change of at most 1, 0.8 for exactly 2, else 0.6
    """
    if previous_energy is None:
        return 1.0

    change = abs(energy - previous_energy)
    if change <= 1:
        return 1.0
    if change == 2:
        return 0.8
    return 0.6
