#!/usr/bin/env python

""" Subjet fragmentation.

The constituents of a jet are reclustered with a smaller resolution parameter r, and the
fraction of the jet momentum carried by each subjet, ``z_r = pt_subjet / pt_jet``, is
measured. The leading subjet gives the leading fragmentation, while all subjets together
give the inclusive fragmentation.
"""

from dataclasses import dataclass
import logging
import numpy as np
from typing import Callable, Sequence

from jet_observables.base import analysis_objects

logger = logging.getLogger(__name__)

# Takes the constituents and the resolution parameter and returns the reclustered subjets.
Reclusterer = Callable[[np.ndarray, float], Sequence[analysis_objects.Jet]]

class EmptyConstituentsError(ValueError):
    """ Raised when a jet without constituents is requested to be reclustered. """

@dataclass(frozen = True)
class SubjetFragmentation:
    """ Momentum fractions of the subjets of a single jet.

    Attributes:
        subjet_radius: Resolution parameter used for reclustering.
        z_inclusive: Momentum fraction of every subjet, in descending order.
    """
    subjet_radius: float
    z_inclusive: np.ndarray

    @property
    def z_leading(self) -> float:
        """ Momentum fraction carried by the leading subjet. """
        return float(self.z_inclusive[0])

def subjet_momentum_fractions(jet: analysis_objects.Jet, subjet_radius: float,
                              recluster: Reclusterer) -> SubjetFragmentation:
    """ Recluster the constituents of a jet and calculate the subjet momentum fractions.

    Args:
        jet: Jet to be reclustered.
        subjet_radius: Resolution parameter r of the subjets.
        recluster: Jet finder used for reclustering the constituents.
    Returns:
        Subjet momentum fractions.
    Raises:
        EmptyConstituentsError: If the jet doesn't have any constituents.
    """
    if len(jet.constituents) == 0:
        raise EmptyConstituentsError(f"Cannot recluster jet with pt {jet.pt} without any constituents.")

    subjets = recluster(jet.constituents, subjet_radius)
    if len(subjets) == 0:
        raise EmptyConstituentsError(f"Reclustering jet with pt {jet.pt} at r = {subjet_radius} found no subjets.")

    # Don't rely on the jet finder for the ordering.
    subjet_pts = np.sort(np.array([s.pt for s in subjets], dtype = np.float64))[::-1]
    return SubjetFragmentation(
        subjet_radius = subjet_radius,
        z_inclusive = subjet_pts / jet.pt,
    )
