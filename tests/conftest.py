#!/usr/bin/env python

""" Shared fixtures for the jet observables tests. """

import logging
import numpy as np
import pytest

from jet_observables.base import analysis_objects

@pytest.fixture
def logging_mixin(caplog):
    """ Logging mixin to capture logging messages from modules.

    It logs at the debug level, which is probably most useful for when a test fails.
    """
    caplog.set_level(logging.DEBUG)

@pytest.fixture
def make_jet():
    """ Factory for jets with the given kinematics and constituents.

    The constituents are given as (pT, eta, phi) records, and are treated as charged pions.
    """
    def _make_jet(pt, eta = 0.0, phi = 0.0, mass = 0.0, rapidity = None, constituents = None):
        if rapidity is None:
            rapidity = eta
        if constituents is None:
            particles = np.zeros(0, dtype = analysis_objects.DTYPE_PARTICLE)
        else:
            particles = analysis_objects.particles_from_records(
                [(c_pt, c_eta, c_phi, 0.13957, 211, 1) for c_pt, c_eta, c_phi in constituents]
            )
        return analysis_objects.Jet(
            pt = pt, eta = eta, rapidity = rapidity, phi = phi, mass = mass, constituents = particles,
        )

    return _make_jet
