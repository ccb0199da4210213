#!/usr/bin/env python

""" Map measured quantities onto ranges defined by upper bin edges.

Measurements are usually reported in ranges of some quantity (for example, jet pt or
absolute rapidity). The ranges are defined here by their upper edges alone, so that a
value is assigned to the first range whose upper edge it doesn't exceed. Values above
every edge are assigned to the invalid range, 0.
"""

from dataclasses import dataclass
import logging
import numpy as np
from typing import Dict, Iterator, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

# Returned for values which are larger than every edge (or are NaN).
OUT_OF_RANGE = 0

_T = TypeVar("_T")

@dataclass(frozen = True)
class EdgeTable:
    """ Ordered upper edges of a set of ranges.

    Range ``i`` (1-indexed) contains the values ``e_{i-1} < value <= e_i``, where ``e_0`` is
    taken to be -inf unless a lower edge is given.

    Args:
        edges: Strictly increasing upper edges.
        lower_edge: Lower edge of the first range. Values at or below it are out of range.
            Default: None, which leaves the first range open below.
    Raises:
        ValueError: If the edges are empty or aren't strictly increasing.
    """
    edges: Tuple[float, ...]
    lower_edge: Optional[float] = None

    def __post_init__(self) -> None:
        # Store as a tuple of floats regardless of what was passed. The object is frozen, so we need
        # to go through object.
        edges = tuple(float(e) for e in self.edges)
        object.__setattr__(self, "edges", edges)
        if len(edges) == 0:
            raise ValueError("An edge table requires at least one edge.")
        if any(not np.isfinite(e) for e in edges):
            raise ValueError(f"Edges must be finite. Received: {edges}")
        if any(high <= low for low, high in zip(edges[:-1], edges[1:])):
            raise ValueError(f"Edges must be strictly increasing. Received: {edges}")
        if self.lower_edge is not None:
            lower_edge = float(self.lower_edge)
            object.__setattr__(self, "lower_edge", lower_edge)
            if not np.isfinite(lower_edge) or lower_edge >= edges[0]:
                raise ValueError(f"Lower edge {lower_edge} must be finite and below the first edge {edges[0]}.")

    @classmethod
    def from_bounds(cls, bounds: Sequence[float]) -> "EdgeTable":
        """ Create a table where the first entry is the lower edge of the first range.

        For example, ``(10, 30, 60)`` describes the ranges ``(10, 30]`` and ``(30, 60]``.

        Args:
            bounds: Lower edge followed by the upper edges.
        Returns:
            The edge table.
        """
        if len(bounds) < 2:
            raise ValueError(f"At least two bounds are required to define a range. Received: {bounds}")
        return cls(edges = tuple(bounds[1:]), lower_edge = bounds[0])

    def __len__(self) -> int:
        return len(self.edges)

    def find_bin(self, value: float) -> int:
        """ Find the range which contains the value.

        Note:
            A value which is equal to an edge belongs to the range which that edge closes.

        Args:
            value: Value to be classified.
        Returns:
            Index of the range (starting from 1), or ``OUT_OF_RANGE`` if the value is larger than every
            edge, isn't above the lower edge, or isn't a number.
        """
        return int(self.find_bins(value)[0])

    def find_bins(self, values: Sequence[float]) -> np.ndarray:
        """ Vectorized version of ``find_bin(...)``.

        Args:
            values: Values to be classified. A scalar is treated as a single value.
        Returns:
            Range index of each value.
        """
        values = np.atleast_1d(np.asarray(values, dtype = np.float64))
        # searchsorted with side = "left" returns the first edge which is >= value, which is exactly the
        # range closed by that edge. NaN sorts after every edge, so it ends up out of range.
        indices = np.searchsorted(self.edges, values, side = "left") + 1
        out_of_range = indices > len(self.edges)
        if self.lower_edge is not None:
            out_of_range |= values <= self.lower_edge
        return np.where(out_of_range, OUT_OF_RANGE, indices)

    def bin_range(self, index: int) -> Tuple[float, float]:
        """ Lower and upper edge of a range.

        Without a lower edge, the lower edge of the first range is reported as 0 because the tables
        describe non-negative quantities (pt, absolute rapidity, etc).

        Args:
            index: Range index, starting from 1.
        Returns:
            (lower edge, upper edge)
        """
        if not 1 <= index <= len(self.edges):
            raise IndexError(f"Range {index} is outside of the edge table (1-{len(self.edges)}).")
        if index > 1:
            low = self.edges[index - 2]
        else:
            low = self.lower_edge if self.lower_edge is not None else 0.0
        return low, self.edges[index - 1]

    def bin_label(self, index: int) -> str:
        """ Label of a range of the form "low_high", as used in histogram names. """
        low, high = self.bin_range(index)
        return f"{low:g}_{high:g}"

    def indices(self) -> Iterator[int]:
        """ Iterate over the valid range indices. """
        return iter(range(1, len(self.edges) + 1))

    def map_indices(self, values: Dict[int, _T]) -> Dict[int, _T]:
        """ Validate a mapping from range index to an object (usually a histogram name).

        Args:
            values: Map from range index to the object.
        Returns:
            The validated map.
        Raises:
            ValueError: If any valid index is missing, or if the invalid range is mapped.
        """
        missing = set(self.indices()) - set(values)
        if missing:
            raise ValueError(f"Ranges {sorted(missing)} are not mapped.")
        if OUT_OF_RANGE in values:
            raise ValueError("The out of range index cannot be mapped.")
        return values
