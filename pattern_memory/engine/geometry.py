"""
Pointer geometry for the pattern grid

Maps raw pointer coordinates onto dot identities so the pattern engine
never has to deal with pixels.
"""

from typing import List, Optional, Tuple

import numpy as np

from ..interfaces import PatternEngineError
from .pattern_engine import GRID_SIZE, TOTAL_DOTS


DEFAULT_HIT_TOLERANCE = 40.0


class DotLocator:
    """Resolve (x, y) positions to the nearest dot within a pixel tolerance"""

    def __init__(self, centers, tolerance: float = DEFAULT_HIT_TOLERANCE):
        centers = np.asarray(centers, dtype=float)
        if centers.shape != (TOTAL_DOTS, 2):
            raise PatternEngineError(
                f"Expected {TOTAL_DOTS} dot centres, got array of shape {centers.shape}")
        if tolerance <= 0:
            raise PatternEngineError(f"Hit tolerance must be positive: {tolerance}")

        self.centers = centers
        self.tolerance = float(tolerance)

    @classmethod
    def from_grid(cls,
                  origin: Tuple[float, float],
                  spacing: float,
                  tolerance: float = DEFAULT_HIT_TOLERANCE) -> 'DotLocator':
        """
        Lay out a 3x3 grid of dot centres

        Args:
            origin: Centre of dot 0 (top-left)
            spacing: Distance between neighbouring dot centres
            tolerance: Maximum hit distance from a dot centre
        """
        rows, cols = np.divmod(np.arange(TOTAL_DOTS), GRID_SIZE)
        centers = np.column_stack((origin[0] + cols * spacing,
                                   origin[1] + rows * spacing))
        return cls(centers, tolerance)

    def distances(self, x: float, y: float) -> np.ndarray:
        return np.hypot(self.centers[:, 0] - x, self.centers[:, 1] - y)

    def locate(self, x: float, y: float) -> Optional[int]:
        """Return the nearest dot strictly within tolerance, or None"""
        distances = self.distances(x, y)
        nearest = int(np.argmin(distances))
        if distances[nearest] < self.tolerance:
            return nearest
        return None

    def center_of(self, dot: int) -> Tuple[float, float]:
        x, y = self.centers[dot]
        return float(x), float(y)

    def path_points(self, sequence: List[int]) -> List[Tuple[float, float]]:
        """Centres of the dots in sequence, in drawing order"""
        return [self.center_of(dot) for dot in sequence]
