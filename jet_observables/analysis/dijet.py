#!/usr/bin/env python

""" Dijet momentum balance.

The two highest pt jets of an event form the dijet. The pair is accepted if the jets
are back-to-back, in which case the momentum balance ``xJ = pt_subleading / pt_leading``
is measured.
"""

from dataclasses import dataclass
import logging
import numpy as np
from typing import Optional, Sequence

from jet_observables.analysis import event_plane
from jet_observables.base import analysis_objects
from jet_observables.base import params

logger = logging.getLogger(__name__)

# Minimum azimuthal separation for the jets to be considered back-to-back.
DELTA_PHI_MIN = 7 * np.pi / 8

@dataclass(frozen = True)
class DijetPair:
    """ Leading and subleading jets of an event.

    Attributes:
        leading: Leading jet.
        subleading: Subleading jet.
        delta_phi: Azimuthal separation of the jets, within [0, pi].
        delta_phi_min: Minimum separation for the pair to be accepted.
    """
    leading: analysis_objects.Jet
    subleading: analysis_objects.Jet
    delta_phi: float
    delta_phi_min: float = DELTA_PHI_MIN

    @property
    def accepted(self) -> bool:
        """ True if the jets are back-to-back. """
        return self.delta_phi > self.delta_phi_min

    @property
    def xj(self) -> float:
        """ Momentum balance of the dijet. """
        return self.subleading.pt / self.leading.pt

def build_dijet(jets: Sequence[analysis_objects.Jet],
                selection: Optional[params.JetSelection] = None,
                delta_phi_min: float = DELTA_PHI_MIN) -> Optional[DijetPair]:
    """ Build the dijet from the leading and subleading jets.

    Args:
        jets: Jets which passed the event level selection.
        selection: Additional selection applied to the jets before pairing. Default: None.
        delta_phi_min: Minimum separation for the pair to be accepted. Default: 7pi/8.
    Returns:
        The dijet pair, or None if fewer than two jets pass the selection.
    """
    selected = analysis_objects.jets_by_pt(jets)
    if selection is not None:
        selected = [j for j in selected if selection.accepts(j)]
    if len(selected) < 2:
        return None

    leading, subleading = selected[0], selected[1]
    return DijetPair(
        leading = leading,
        subleading = subleading,
        delta_phi = event_plane.angular_distance(leading.phi, subleading.phi),
        delta_phi_min = delta_phi_min,
    )
