#!/usr/bin/env python

""" Read events which were stored in numpy archives.

The archive contains the particles of all events concatenated into a single structured
array, the offsets which delimit each event, and optionally the event weights:

- ``particles``: Structured array with the ``DTYPE_PARTICLE`` fields.
- ``offsets``: Integer array of length ``n_events + 1``. Event ``i`` consists of the particles
  ``offsets[i]:offsets[i + 1]``.
- ``weights``: Float array of length ``n_events``. Optional.
"""

import logging
import numpy as np
from typing import Iterable, Optional, Sequence

from jet_observables.base import analysis_objects
from jet_observables.event_gen import generator

logger = logging.getLogger(__name__)

def write_events(filename: str, events: Sequence[np.ndarray], weights: Optional[Sequence[float]] = None) -> str:
    """ Write events to a numpy archive.

    Args:
        filename: Output filename. ".npz" is appended if necessary.
        events: Structured particle arrays, one per event.
        weights: Event weights. Default: None, in which case they are not stored.
    Returns:
        The filename under which the events were written.
    """
    if not filename.endswith(".npz"):
        filename += ".npz"

    offsets = np.zeros(len(events) + 1, dtype = np.int64)
    offsets[1:] = np.cumsum([len(e) for e in events])
    if events:
        particles = np.concatenate([np.asarray(e, dtype = analysis_objects.DTYPE_PARTICLE) for e in events])
    else:
        particles = np.zeros(0, dtype = analysis_objects.DTYPE_PARTICLE)

    arrays = {"particles": particles, "offsets": offsets}
    if weights is not None:
        if len(weights) != len(events):
            raise ValueError(f"Number of weights ({len(weights)}) doesn't match the number of events ({len(events)}).")
        arrays["weights"] = np.asarray(weights, dtype = np.float64)

    with open(filename, "wb") as f:
        np.savez(f, **arrays)

    return filename

class NumpyEventReader(generator.EventSource):
    """ Provide events stored in a numpy archive.

    Args:
        filename: Path to the archive.

    Attributes:
        filename: Path to the archive.
        particles: Particles of all events.
        offsets: Offsets delimiting each event.
        weights: Weight of each event.
    """
    def __init__(self, filename: str):
        super().__init__()
        self.filename = filename
        self.particles: np.ndarray = np.zeros(0, dtype = analysis_objects.DTYPE_PARTICLE)
        self.offsets: np.ndarray = np.zeros(1, dtype = np.int64)
        self.weights: np.ndarray = np.zeros(0, dtype = np.float64)

    @property
    def n_events(self) -> int:
        return len(self.offsets) - 1

    def setup(self) -> bool:
        """ Load the archive and validate its contents.

        Raises:
            ValueError: If the archive is malformed.
        """
        if self.initialized is True:
            raise RuntimeError(f"Events from {self.filename} have already been loaded.")

        with np.load(self.filename) as data:
            particles = data["particles"]
            offsets = data["offsets"]
            weights = data["weights"] if "weights" in data.files else None

        missing_fields = set(analysis_objects.DTYPE_PARTICLE.names) - set(particles.dtype.names or [])
        if missing_fields:
            raise ValueError(f"Particles in {self.filename} are missing fields {sorted(missing_fields)}.")
        if len(offsets) == 0 or offsets[0] != 0 or offsets[-1] != len(particles) or np.any(np.diff(offsets) < 0):
            raise ValueError(f"Invalid event offsets in {self.filename}.")

        # Ensure the expected layout regardless of how it was stored.
        self.particles = np.array(particles[list(analysis_objects.DTYPE_PARTICLE.names)],
                                  dtype = analysis_objects.DTYPE_PARTICLE)
        self.offsets = np.asarray(offsets, dtype = np.int64)
        if weights is None:
            weights = np.ones(self.n_events, dtype = np.float64)
        if len(weights) != self.n_events:
            raise ValueError(f"Expected {self.n_events} weights in {self.filename}, but found {len(weights)}.")
        self.weights = np.asarray(weights, dtype = np.float64)

        logger.info(f"Loaded {self.n_events} events ({len(self.particles)} particles) from {self.filename}")
        self.initialized = True
        return self.initialized

    def __call__(self, n_events: Optional[int] = None) -> Iterable[generator.Event]:
        """ Provide the stored events.

        Args:
            n_events: Maximum number of events to provide. Default: None, which provides all events.
        Returns:
            Generator which provides the events.
        """
        if not self.initialized:
            raise RuntimeError("The event reader was not yet initialized.")

        n_available = self.n_events
        if n_events is None or n_events > n_available:
            n_events = n_available

        for i in range(n_events):
            properties = generator.EventProperties(event_number = i, weight = float(self.weights[i]))
            yield properties, self.particles[self.offsets[i]:self.offsets[i + 1]]
