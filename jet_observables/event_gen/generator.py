#!/usr/bin/env python

""" Base interface for sources of events.

Events are provided by an external generator (including the background subtraction). They
are represented by the event level properties and a structured array of final state particles.
"""

import abc
from dataclasses import dataclass
import numpy as np
from typing import Iterable, Optional, Tuple

# Type helpers
Event = Tuple["EventProperties", np.ndarray]

@dataclass
class EventProperties:
    """ Event level properties.

    Attributes:
        event_number: Index of the event within the source.
        weight: Event weight, which is applied to every fill of the event.
    """
    event_number: int
    weight: float = 1.0

class EventSource(abc.ABC):
    """ Base event source class.

    Attributes:
        initialized: True if the source has been initialized.
    """
    def __init__(self) -> None:
        # Store the state so we can check it later.
        self.initialized = False

    @abc.abstractmethod
    def setup(self) -> bool:
        ...

    @abc.abstractmethod
    def __call__(self, n_events: Optional[int] = None) -> Iterable[Event]:
        """ Provide events.

        Args:
            n_events: Maximum number of events to provide. Default: None, which provides all available events.
        Returns:
            Event level information and the particles of each event.
        """
        ...
