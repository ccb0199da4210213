#!/usr/bin/env python

""" Tests for reading stored events. """

import logging
import numpy as np
import pytest

from jet_observables.base import analysis_objects
from jet_observables.event_gen import reader

# Setup logger
logger = logging.getLogger(__name__)

@pytest.fixture
def events():
    return [
        analysis_objects.particles_from_records([(1.0, 0.1, 0.2, 0.14, 211, 1), (2.0, -0.5, 3.0, 0.0, 22, 0)]),
        analysis_objects.particles_from_records([]),
        analysis_objects.particles_from_records([(5.0, 1.0, 1.0, 0.94, 2212, 1)]),
    ]

def test_read_events(logging_mixin, tmp_path, events):
    """ Test reading events, including an empty event. """
    filename = reader.write_events(str(tmp_path / "events"), events, weights = [1.0, 0.5, 2.0])
    assert filename.endswith(".npz")

    source = reader.NumpyEventReader(filename)
    assert source.setup() is True
    assert source.n_events == 3

    read_events = list(source())
    assert [properties.event_number for properties, _ in read_events] == [0, 1, 2]
    assert [properties.weight for properties, _ in read_events] == [1.0, 0.5, 2.0]
    for (_, particles), expected in zip(read_events, events):
        assert np.array_equal(particles, expected)

def test_limit_number_of_events(logging_mixin, tmp_path, events):
    """ Test that the number of events can be limited, and that requesting too many is fine. """
    source = reader.NumpyEventReader(reader.write_events(str(tmp_path / "events.npz"), events))
    source.setup()

    assert len(list(source(n_events = 2))) == 2
    assert len(list(source(n_events = 10))) == 3
    # Weights default to 1.
    assert all(properties.weight == 1.0 for properties, _ in source())

def test_reader_must_be_initialized(logging_mixin, tmp_path, events):
    source = reader.NumpyEventReader(reader.write_events(str(tmp_path / "events.npz"), events))
    with pytest.raises(RuntimeError):
        list(source())
    source.setup()
    with pytest.raises(RuntimeError):
        source.setup()

def test_mismatched_weights(logging_mixin, tmp_path, events):
    with pytest.raises(ValueError):
        reader.write_events(str(tmp_path / "events.npz"), events, weights = [1.0])

@pytest.mark.parametrize("offsets", [
    [0, 2],
    [1, 2, 3],
    [0, 2, 1, 3],
], ids = ["Missing particles", "Not starting at zero", "Decreasing"])
def test_invalid_offsets(logging_mixin, tmp_path, offsets):
    """ Test that malformed archives are rejected. """
    filename = str(tmp_path / "events.npz")
    particles = analysis_objects.particles_from_records([(1.0, 0.0, 0.0, 0.14, 211, 1)] * 3)
    np.savez(filename, particles = particles, offsets = np.array(offsets))

    with pytest.raises(ValueError):
        reader.NumpyEventReader(filename).setup()

def test_missing_fields(logging_mixin, tmp_path):
    filename = str(tmp_path / "events.npz")
    particles = np.zeros(2, dtype = [("pT", np.float64), ("eta", np.float64)])
    np.savez(filename, particles = particles, offsets = np.array([0, 2]))

    with pytest.raises(ValueError, match = "missing fields"):
        reader.NumpyEventReader(filename).setup()
