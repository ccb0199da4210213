#!/usr/bin/env python

""" Jet observables analysis parameters.

Contains the selection containers (jet selections, trigger classes, jet inputs) and the
enumerations which identify observables and their classifications.
"""

from dataclasses import dataclass
import enum
import logging
import numpy as np
from typing import Any, Mapping, Optional

from pachyderm import yaml

logger = logging.getLogger(__name__)

# Charged particle acceptance of the ALICE TPC
ALICE_ETA_MAX = 0.9
# Calorimeter acceptance used for the ATLAS and CMS style measurements
ATLAS_ETA_MAX = 3.2

#########################
## Helpers and containers
#########################
@dataclass(frozen = True)
class JetSelection:
    """ Jet level kinematic selection.

    All bounds are exclusive unless ``inclusive_pt`` is set, in which case the pt bounds are
    inclusive. Any of the bounds may be disabled by leaving it as ``None``.

    Attributes:
        pt_min: Minimum jet pt.
        pt_max: Maximum jet pt.
        abs_eta_max: Maximum jet absolute pseudorapidity.
        abs_rapidity_max: Maximum jet absolute rapidity.
        inclusive_pt: If True, jets at the pt bounds are accepted.
    """
    pt_min: Optional[float] = None
    pt_max: Optional[float] = None
    abs_eta_max: Optional[float] = None
    abs_rapidity_max: Optional[float] = None
    inclusive_pt: bool = False

    def accepts(self, jet: Any) -> bool:
        """ Check whether a jet passes the selection.

        Args:
            jet: Object exposing ``pt``, ``eta`` and ``rapidity``.
        Returns:
            True if the jet is accepted.
        """
        if self.pt_min is not None and not (jet.pt >= self.pt_min if self.inclusive_pt else jet.pt > self.pt_min):
            return False
        if self.pt_max is not None and not (jet.pt <= self.pt_max if self.inclusive_pt else jet.pt < self.pt_max):
            return False
        if self.abs_eta_max is not None and not abs(jet.eta) < self.abs_eta_max:
            return False
        if self.abs_rapidity_max is not None and not abs(jet.rapidity) < self.abs_rapidity_max:
            return False
        return True

@dataclass(frozen = True)
class TriggerClass:
    """ Hadron selection window which defines the trigger particles of a correlation measurement.

    The pt window is open on both sides, and either side can be unbounded.

    Attributes:
        name: Name of the class. Used to name the accumulators.
        pt_min: Minimum trigger pt. None disables the bound.
        pt_max: Maximum trigger pt. None disables the bound.
        eta_max: Maximum absolute pseudorapidity.
    """
    name: str
    pt_min: Optional[float] = None
    pt_max: Optional[float] = None
    eta_max: float = ALICE_ETA_MAX

    def __post_init__(self) -> None:
        if self.pt_min is not None and self.pt_max is not None and self.pt_min >= self.pt_max:
            raise ValueError(f"Trigger class {self.name} has an empty pt window ({self.pt_min}, {self.pt_max}).")
        if self.eta_max <= 0:
            raise ValueError(f"Trigger class {self.name} requires a positive eta_max, but received {self.eta_max}.")

    def mask(self, particles: np.ndarray) -> np.ndarray:
        """ Determine which particles fall within the trigger window.

        Args:
            particles: Structured particle array.
        Returns:
            Boolean mask of the particles within the window.
        """
        selected = np.abs(particles["eta"]) < self.eta_max
        if self.pt_min is not None:
            selected &= particles["pT"] > self.pt_min
        if self.pt_max is not None:
            selected &= particles["pT"] < self.pt_max
        return selected

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TriggerClass":
        """ Create a trigger class from a configuration mapping. """
        return cls(
            name = str(config["name"]),
            pt_min = config.get("pt_min", None),
            pt_max = config.get("pt_max", None),
            eta_max = config.get("eta_max", ALICE_ETA_MAX),
        )

#########
# Classes
#########
class ObservableKind(enum.Enum):
    """ Observables which can be enabled in an analysis.

    The value is a short description which is used for logging.
    """
    jet_spectra = "Jet spectra in rapidity slices"
    dijet_asymmetry = "Dijet momentum balance xJ"
    subjet_fragmentation = "Leading and inclusive subjet fragmentation"
    event_plane_spectra = "In-plane and out-of-plane jet spectra"
    hadron_jet = "Hadron triggered recoil jets"
    jet_phi_distribution = "Jet azimuthal distributions"
    jet_mass = "Jet mass"
    extra_spectra = "Additional jet spectra"

    def __str__(self) -> str:
        """ Return the name of the observable. It must be just the name for the config to work properly. """
        return self.name

    def display_str(self) -> str:
        """ Return the description of the observable. """
        return str(self.value)

    # Handle YAML serialization
    to_yaml = classmethod(yaml.enum_to_yaml)
    from_yaml = classmethod(yaml.enum_from_yaml)

class PlaneOrientation(enum.Enum):
    """ Orientation of a jet relative to a symmetry plane. """
    in_plane = 0
    out_of_plane = 1
    neither = 2

    def __str__(self) -> str:
        """ Returns the orientation name, as is. """
        return self.name

    def display_str(self) -> str:
        """ For example, turns out_of_plane into "Out-of-plane". """
        return str(self).replace("_", "-").capitalize()

    # Handle YAML serialization
    to_yaml = classmethod(yaml.enum_to_yaml)
    from_yaml = classmethod(yaml.enum_from_yaml)

class JetConstituents(enum.Enum):
    """ Particles which are passed to the jet finder. """
    all_particles = 0
    charged = 1

    def __str__(self) -> str:
        return self.name

    # Handle YAML serialization
    to_yaml = classmethod(yaml.enum_to_yaml)
    from_yaml = classmethod(yaml.enum_from_yaml)

@dataclass(frozen = True)
class JetInput:
    """ Defines the particles and resolution parameter used to find jets for an observable.

    Observables which share the same jet input share the found jets within an event.

    Attributes:
        constituents: Which particles are passed to the jet finder.
        eta_max: Absolute pseudorapidity acceptance of the particles.
        jet_radius: Jet resolution parameter.
    """
    constituents: JetConstituents
    eta_max: float
    jet_radius: float
