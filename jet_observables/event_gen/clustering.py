#!/usr/bin/env python

""" Perform jet finding using FastJet via pyjet.

The jet finder is treated as an external collaborator by the observables: they only require a
callable which takes a structured particle array and the resolution parameter and returns the
jets ordered by descending pt. This module provides those callables.
"""

import logging
import numpy as np
from typing import Any, List

from jet_observables.base import analysis_objects

logger = logging.getLogger(__name__)

def _pyjet() -> Any:
    """ Import pyjet on demand so that only the jet finding requires it. """
    import pyjet
    return pyjet

def _to_jet(pseudo_jet: Any) -> analysis_objects.Jet:
    """ Convert a pyjet PseudoJet into a jet.

    Args:
        pseudo_jet: Jet found by pyjet.
    Returns:
        The converted jet.
    """
    constituents = np.array(pseudo_jet.constituents_array(), dtype = analysis_objects.DTYPE_PARTICLE)
    return analysis_objects.Jet(
        pt = pseudo_jet.pt,
        eta = pseudo_jet.eta,
        rapidity = float(analysis_objects.rapidity(pseudo_jet.pt, pseudo_jet.eta, pseudo_jet.mass)),
        phi = pseudo_jet.phi,
        mass = pseudo_jet.mass,
        constituents = constituents,
    )

def find_jets(particles: np.ndarray, R: float = 0.4, algorithm: str = "antikt",
              min_jet_pt: float = 0.0) -> List[analysis_objects.Jet]:
    """ Perform jet finding using FastJet.

    Assumes that the input is a structured particle array of the form (pT, eta, phi, mass, ...).
    The additional fields are stored with the constituents.

    Args:
        particles: Array containing the input particles.
        R: Jet finding resolution parameter. Default: R = 0.4.
        algorithm: Name of the jet-algorithm to use. Default: "antikt".
        min_jet_pt: Minimum jet pt. Default: 0.
    Returns:
        Jets found by FastJet, ordered by descending pt.
    """
    if len(particles) == 0:
        return []

    pyjet = _pyjet()
    inputs = np.asarray(particles, dtype = analysis_objects.DTYPE_PARTICLE)
    jet_def = pyjet.JetDefinition(algo = algorithm, R = R)
    cluster_sequence = pyjet.ClusterSequence(inputs, jet_def, ep = False)
    jets = [_to_jet(j) for j in cluster_sequence.inclusive_jets(ptmin = min_jet_pt)]

    return analysis_objects.jets_by_pt(jets)

def recluster(constituents: np.ndarray, R: float, algorithm: str = "kt") -> List[analysis_objects.Jet]:
    """ Recluster jet constituents into subjets.

    Args:
        constituents: Structured particle array of the jet constituents.
        R: Subjet resolution parameter.
        algorithm: Name of the jet-algorithm to use. Default: "kt".
    Returns:
        Subjets, ordered by descending pt.
    """
    return find_jets(constituents, R = R, algorithm = algorithm)
