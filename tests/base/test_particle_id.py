#!/usr/bin/env python

""" Tests for the particle identification helpers. """

import logging
import numpy as np
import pytest

from jet_observables.base import analysis_objects
from jet_observables.base import particle_id

# Setup logger
logger = logging.getLogger(__name__)

@pytest.mark.parametrize("pid, expected_meson, expected_baryon", [
    (211, True, False),
    (-211, True, False),
    (111, True, False),
    (321, True, False),
    (130, True, False),
    (310, True, False),
    (2212, False, True),
    (-2212, False, True),
    (3122, False, True),
    (22, False, False),
    (11, False, False),
    (-13, False, False),
    (2101, False, False),
    (110, False, False),
    (1000020040, False, False),
], ids = [
    "pi+", "pi-", "pi0", "K+", "K0L", "K0S", "proton", "antiproton", "Lambda",
    "photon", "electron", "muon", "Diquark", "Reserved", "Alpha",
])
def test_hadron_identification(logging_mixin, pid, expected_meson, expected_baryon):
    """ Test the meson and baryon identification. """
    assert bool(particle_id.is_meson(pid)) is expected_meson
    assert bool(particle_id.is_baryon(pid)) is expected_baryon
    assert bool(particle_id.is_hadron(pid)) is (expected_meson or expected_baryon)

def test_charged_hadron_mask(logging_mixin):
    """ Test the charged hadron selection on a particle array. """
    particles = analysis_objects.particles_from_records([
        (1.0, 0.0, 0.0, 0.14, 211, 1),
        (1.0, 0.0, 0.0, 0.14, 111, 0),
        (1.0, 0.0, 0.0, 0.94, -2212, -1),
        (1.0, 0.0, 0.0, 0.0005, 11, -1),
        (1.0, 0.0, 0.0, 0.0, 22, 0),
    ])

    assert list(particle_id.charged_hadron_mask(particles)) == [True, False, True, False, False]
    assert np.count_nonzero(particle_id.is_charged(particles["charge"])) == 3
