#!/usr/bin/env python

""" Analysis objects for the jet observables analysis.

Contains the particle and jet containers which are passed between the event input, the
jet finder and the observables, as well as the histograms which accumulate the observables.
"""

import copy
from dataclasses import dataclass, field
import hist
import logging
import numpy as np
import os
from typing import Dict, Iterator, List, Optional, Sequence, Union

from pachyderm import histogram

# Setup logger
logger = logging.getLogger(__name__)

# Type helpers
# NOTE: Every field is a float so that the array can be passed directly to the jet finder.
DTYPE_PARTICLE = np.dtype([
    ("pT", np.float64), ("eta", np.float64), ("phi", np.float64), ("mass", np.float64),
    ("pid", np.float64), ("charge", np.float64),
])
ArrayLike = Union[float, Sequence[float], np.ndarray]

def rapidity(pt: ArrayLike, eta: ArrayLike, mass: ArrayLike) -> np.ndarray:
    """ Calculate the rapidity from the pt, pseudorapidity and mass.

    Uses :math:`y = \\sinh^{-1}(p_{\\mathrm{T}} \\sinh\\eta / m_{\\mathrm{T}})`, which is
    numerically stable at large pseudorapidity.

    Args:
        pt: Transverse momentum.
        eta: Pseudorapidity.
        mass: Mass. Small negative values (from the jet finder) are treated as 0.
    Returns:
        Rapidity.
    """
    pt = np.asarray(pt, dtype = np.float64)
    eta = np.asarray(eta, dtype = np.float64)
    mass_squared = np.clip(np.asarray(mass, dtype = np.float64), 0, None) ** 2
    transverse_mass = np.sqrt(pt ** 2 + mass_squared)
    with np.errstate(divide = "ignore", invalid = "ignore"):
        y = np.arcsinh(pt * np.sinh(eta) / transverse_mass)
    # A massless particle with no pt has no defined rapidity. We follow the convention of 0.
    return np.where(transverse_mass > 0, y, 0.0)

def particle_rapidity(particles: np.ndarray) -> np.ndarray:
    """ Rapidity of each particle in a structured particle array. """
    return rapidity(particles["pT"], particles["eta"], particles["mass"])

def particles_from_records(records: Sequence[Sequence[float]]) -> np.ndarray:
    """ Convert (pT, eta, phi, mass, pid, charge) records into a structured particle array.

    Args:
        records: Particle records in the order of ``DTYPE_PARTICLE``.
    Returns:
        Structured particle array.
    """
    return np.array([tuple(r) for r in records], dtype = DTYPE_PARTICLE)

####################
# Basic data classes
####################
@dataclass(frozen = True, eq = False)
class Jet:
    """ Jet found by the jet finder.

    Attributes:
        pt: Jet transverse momentum.
        eta: Jet pseudorapidity.
        rapidity: Jet rapidity.
        phi: Jet azimuthal angle.
        mass: Jet mass.
        constituents: Structured particle array of the jet constituents.
    """
    pt: float
    eta: float
    rapidity: float
    phi: float
    mass: float
    constituents: np.ndarray = field(default_factory = lambda: np.zeros(0, dtype = DTYPE_PARTICLE))

    @property
    def abs_eta(self) -> float:
        return abs(self.eta)

    @property
    def abs_rapidity(self) -> float:
        return abs(self.rapidity)

    def constituents_in_pt_range(self, pt_min: float, pt_max: Optional[float] = None) -> np.ndarray:
        """ Select the constituents within an (open) pt range.

        Args:
            pt_min: Minimum constituent pt.
            pt_max: Maximum constituent pt. Default: None, which disables the upper bound.
        Returns:
            Selected constituents.
        """
        selected = self.constituents["pT"] > pt_min
        if pt_max is not None:
            selected &= self.constituents["pT"] < pt_max
        return self.constituents[selected]

def jets_by_pt(jets: Sequence[Jet]) -> List[Jet]:
    """ Sort jets by descending pt. """
    return sorted(jets, key = lambda j: j.pt, reverse = True)

@dataclass
class OutputWrapper:
    """ Simple wrapper for where and how output should be stored.

    Attributes:
        output_prefix: File path to where files should be saved.
        output_filename: Filename (without the directory) under which the histograms are stored.
    """
    output_prefix: str
    output_filename: str = "observables.npz"

    @property
    def output_path(self) -> str:
        return os.path.join(self.output_prefix, self.output_filename)

############
# Histograms
############
class Histogram:
    """ One dimensional histogram which accumulates an observable.

    The values are stored in a ``hist.Hist`` with weighted storage, so the sum of weights and
    the sum of squared weights are tracked for each bin. Bins are half open, ``[low, high)``.
    Fills outside of the bin edges are counted as entries, but they end up in the flow bins,
    which are never written out.

    Args:
        name: Name of the histogram.
        bin_edges: Bin edges of the histogram.

    Attributes:
        name: Name of the histogram.
        hist: Underlying histogram.
        entries: Number of fills, including those which fell outside of the bin edges.
    """
    def __init__(self, name: str, bin_edges: ArrayLike):
        bin_edges = np.array(bin_edges, dtype = np.float64)
        if bin_edges.ndim != 1 or len(bin_edges) < 2:
            raise ValueError(f"Histogram {name} requires at least two bin edges, but received {bin_edges}.")
        if np.any(np.diff(bin_edges) <= 0):
            raise ValueError(f"Bin edges of histogram {name} must be strictly increasing. Received: {bin_edges}")
        self.name = name
        self.hist = hist.Hist(hist.axis.Variable(bin_edges, name = "x"), storage = hist.storage.Weight())
        self.entries = 0

    @classmethod
    def linear(cls, name: str, n_bins: int, low: float, high: float) -> "Histogram":
        """ Create a histogram with linearly spaced bins. """
        h = cls(name = name, bin_edges = [low, high])
        h.hist = hist.Hist(hist.axis.Regular(n_bins, low, high, name = "x"), storage = hist.storage.Weight())
        return h

    @property
    def bin_edges(self) -> np.ndarray:
        return np.array(self.hist.axes[0].edges)

    @property
    def y(self) -> np.ndarray:
        """ Sum of weights in each bin. """
        return np.array(self.hist.values())

    @property
    def errors_squared(self) -> np.ndarray:
        """ Sum of squared weights in each bin. """
        return np.array(self.hist.variances())

    @property
    def n_bins(self) -> int:
        return len(self.hist.axes[0])

    @property
    def sum_of_weights(self) -> float:
        return float(np.sum(self.hist.values()))

    def find_bin(self, value: float) -> int:
        """ Find the (0-indexed) bin containing the value.

        Returns:
            Bin index, which is outside of ``[0, n_bins)`` if the value is outside of the edges.
        """
        return int(self.hist.axes[0].index(value))

    def fill(self, value: float, weight: float = 1.0) -> None:
        """ Fill a single value. """
        self.entries += 1
        self.hist.fill(value, weight = weight)

    def fill_many(self, values: ArrayLike, weight: float = 1.0) -> None:
        """ Fill many values with the same weight. """
        values = np.asarray(values, dtype = np.float64).ravel()
        if len(values) == 0:
            return
        self.entries += len(values)
        self.hist.fill(values, weight = weight)

    def scale(self, factor: float) -> None:
        """ Scale the stored values. The squared weights are scaled by the square of the factor. """
        self.hist *= factor

    def set_contents(self, y: ArrayLike, errors_squared: ArrayLike) -> None:
        """ Replace the stored sums of weights and squared weights (for example, when loading). """
        view = self.hist.view()
        view["value"] = np.asarray(y, dtype = np.float64)
        view["variance"] = np.asarray(errors_squared, dtype = np.float64)

    def __add__(self, other: "Histogram") -> "Histogram":
        """ Sum two histograms with the same binning. """
        if self.name != other.name or not np.array_equal(self.bin_edges, other.bin_edges):
            raise ValueError(f"Cannot add histograms {self.name} and {other.name} with different binning.")
        h = copy.copy(self)
        h.hist = self.hist.copy()
        h.set_contents(self.y + other.y, self.errors_squared + other.errors_squared)
        h.entries = self.entries + other.entries
        return h

    def to_pachyderm(self) -> histogram.Histogram1D:
        """ Convert to a ``pachyderm`` histogram for further processing. """
        return histogram.Histogram1D(
            bin_edges = self.bin_edges,
            y = self.y,
            errors_squared = self.errors_squared,
        )

    def __repr__(self) -> str:
        return f"Histogram(name = {self.name!r}, n_bins = {self.n_bins}, entries = {self.entries})"

class HistogramCollection:
    """ Named histograms which are booked during initialization and filled during the event loop.

    Attributes:
        hists: Histograms stored by name.
    """
    def __init__(self) -> None:
        self.hists: Dict[str, Histogram] = {}

    def book(self, name: str, bin_edges: ArrayLike) -> Histogram:
        """ Book a histogram with the given bin edges.

        Raises:
            ValueError: If the name is already booked.
        """
        if name in self.hists:
            raise ValueError(f"Histogram {name} is already booked.")
        h = Histogram(name = name, bin_edges = bin_edges)
        self.hists[name] = h
        return h

    def book_linear(self, name: str, n_bins: int, low: float, high: float) -> Histogram:
        """ Book a histogram with linearly spaced bins. """
        return self.book(name = name, bin_edges = np.linspace(low, high, n_bins + 1))

    def __getitem__(self, name: str) -> Histogram:
        return self.hists[name]

    def __contains__(self, name: str) -> bool:
        return name in self.hists

    def __iter__(self) -> Iterator[str]:
        return iter(self.hists)

    def __len__(self) -> int:
        return len(self.hists)

    def merge(self, other: "HistogramCollection") -> "HistogramCollection":
        """ Sum two collections of histograms, for example from independent workers.

        Returns:
            New collection containing the summed histograms.
        Raises:
            ValueError: If the collections don't contain the same histograms.
        """
        if set(self.hists) != set(other.hists):
            raise ValueError(
                f"Cannot merge collections with different histograms: {sorted(set(self.hists) ^ set(other.hists))}"
            )
        merged = HistogramCollection()
        for name, h in self.hists.items():
            merged.hists[name] = h + other.hists[name]
        return merged

    def save(self, output_info: OutputWrapper) -> str:
        """ Write the histograms to a numpy archive.

        Each histogram is stored under ``{name}.bin_edges``, ``{name}.y`` and ``{name}.errors_squared``.

        Args:
            output_info: Output information.
        Returns:
            The filename under which the histograms were written.
        """
        if not os.path.exists(output_info.output_prefix):
            os.makedirs(output_info.output_prefix)

        arrays: Dict[str, np.ndarray] = {}
        for name, h in self.hists.items():
            arrays[f"{name}.bin_edges"] = h.bin_edges
            arrays[f"{name}.y"] = h.y
            arrays[f"{name}.errors_squared"] = h.errors_squared

        full_path = output_info.output_path
        with open(full_path, "wb") as f:
            np.savez(f, **arrays)
        logger.info(f"Wrote {len(self.hists)} histograms to {full_path}")

        return full_path

    @classmethod
    def load(cls, filename: str) -> "HistogramCollection":
        """ Load histograms written by ``save(...)``.

        Note:
            The number of entries isn't stored, so it is set to 0.
        """
        collection = cls()
        with np.load(filename) as data:
            names = sorted({key.rsplit(".", 1)[0] for key in data.files})
            for name in names:
                h = collection.book(name = name, bin_edges = data[f"{name}.bin_edges"])
                h.set_contents(y = data[f"{name}.y"], errors_squared = data[f"{name}.errors_squared"])
        return collection
