#!/usr/bin/env python

""" Hadron triggered recoil jets.

Charged hadrons within a trigger class define the trigger direction. Every jet in the event
is associated with every trigger, and jets on the away side of the trigger (at least
``pi - 0.6`` away in azimuth) are counted as recoil jets. The per-trigger normalization is
performed later using the trigger counts.
"""

from dataclasses import dataclass
import logging
import numpy as np
from typing import Sequence

from jet_observables.analysis import event_plane
from jet_observables.base import analysis_objects
from jet_observables.base import params
from jet_observables.base import particle_id

logger = logging.getLogger(__name__)

# Minimum azimuthal separation between the trigger and the jet to be on the away side.
AWAY_SIDE_DELTA_PHI_MIN = np.pi - 0.6

# Default trigger classes, following the 20-50 and 8-9 GeV reference classes, and some additional variations.
DEFAULT_TRIGGER_CLASSES = (
    params.TriggerClass(name = "20_50", pt_min = 20, pt_max = 50),
    params.TriggerClass(name = "12_50", pt_min = 12, pt_max = 50),
    params.TriggerClass(name = "8_9", pt_min = 8, pt_max = 9),
    params.TriggerClass(name = "6_7", pt_min = 6, pt_max = 7),
    params.TriggerClass(name = "1", pt_min = 1),
    params.TriggerClass(name = "eta"),
)

@dataclass(frozen = True)
class HadronJetCounts:
    """ Result of associating the triggers of one class with the jets of an event.

    Attributes:
        trigger_pts: Pt of each trigger hadron.
        all_jet_pts: Pt of each jet, once for each trigger.
        away_side_jet_pts: Pt of each jet on the away side of a trigger, once for each such trigger.
    """
    trigger_pts: np.ndarray
    all_jet_pts: np.ndarray
    away_side_jet_pts: np.ndarray

    @property
    def n_triggers(self) -> int:
        return len(self.trigger_pts)

def select_triggers(particles: np.ndarray, trigger_class: params.TriggerClass) -> np.ndarray:
    """ Select the charged hadron triggers of a trigger class.

    Args:
        particles: Structured particle array.
        trigger_class: Trigger class defining the selection window.
    Returns:
        The selected trigger particles.
    """
    return particles[trigger_class.mask(particles) & particle_id.charged_hadron_mask(particles)]

def count_hadron_jet(particles: np.ndarray, jets: Sequence[analysis_objects.Jet],
                     trigger_class: params.TriggerClass,
                     away_side_min: float = AWAY_SIDE_DELTA_PHI_MIN) -> HadronJetCounts:
    """ Associate each trigger of a class with each jet.

    Args:
        particles: Structured particle array of the event.
        jets: Jets which passed the jet selection.
        trigger_class: Trigger class defining the trigger selection.
        away_side_min: Minimum azimuthal separation for a jet to be on the away side.
    Returns:
        The trigger and jet counts.
    """
    triggers = select_triggers(particles, trigger_class)
    jet_pts = np.array([j.pt for j in jets], dtype = np.float64)
    jet_phis = np.array([j.phi for j in jets], dtype = np.float64)

    # Shape: (n_triggers, n_jets)
    delta_phi = np.asarray(event_plane.angular_distance(triggers["phi"][:, np.newaxis], jet_phis[np.newaxis, :]))
    all_jet_pts = np.broadcast_to(jet_pts, delta_phi.shape)
    away_side = delta_phi >= away_side_min

    return HadronJetCounts(
        trigger_pts = np.array(triggers["pT"]),
        all_jet_pts = all_jet_pts.ravel().copy(),
        away_side_jet_pts = all_jet_pts[away_side],
    )
