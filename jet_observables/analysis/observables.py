#!/usr/bin/env python

""" Observables and the pipeline which routes each event to them.

Each observable kind is implemented by an ``Observable`` subclass, which books its histograms,
defines the particles and jet selection that it requires, and fills its histograms for each
event. The ``ObservablePipeline`` creates the enabled observables from the analysis
configuration, finds the jets once for each distinct jet input, and dispatches every event to
each observable.

Histograms are stored under ``{observable kind}/{name}``.
"""

import abc
import inspect
import logging
import numpy as np
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple, Type

from jet_observables.analysis import binning
from jet_observables.analysis import dijet
from jet_observables.analysis import event_plane
from jet_observables.analysis import hadron_jet
from jet_observables.analysis import subjet_fragmentation
from jet_observables.base import analysis_config
from jet_observables.base import analysis_objects
from jet_observables.base import params
from jet_observables.base import particle_id
from jet_observables.event_gen import generator

logger = logging.getLogger(__name__)

# Type helpers
# Takes the particles and the resolution parameter and returns the jets ordered by descending pt.
JetFinder = Callable[[np.ndarray, float], Sequence[analysis_objects.Jet]]
Jets = Sequence[analysis_objects.Jet]

def _radius_label(jet_radius: float) -> str:
    """ Label of the jet radius used in histogram names, such as "R0.4". """
    return f"R{jet_radius:g}"

def _compact_radius_label(jet_radius: float) -> str:
    """ Label of a radius without the decimal point, such as "04" for 0.4. """
    return f"{jet_radius:g}".replace(".", "")

class Observable(abc.ABC):
    """ Base class for observables.

    Args:
        jet_radius: Jet resolution parameter.

    Attributes:
        jet_radius: Jet resolution parameter.
        jet_input: Particles and resolution parameter used for finding the jets.
        jet_selection: Selection applied to the jets before they are passed to ``process(...)``.
    """
    kind: ClassVar[params.ObservableKind]

    def __init__(self, jet_radius: float):
        self.jet_radius = jet_radius
        self.jet_input: params.JetInput
        self.jet_selection: params.JetSelection

    @classmethod
    def from_config(cls, config: analysis_config.AnalysisConfig, options: Mapping[str, Any],
                    recluster: subjet_fragmentation.Reclusterer) -> "Observable":
        """ Create the observable from the analysis configuration.

        Args:
            config: Analysis configuration.
            options: Observable specific options.
            recluster: Jet finder used for reclustering jet constituents.
        Returns:
            The observable.
        Raises:
            ConfigurationError: If an option is unknown.
        """
        _validate_options(cls, options)
        return cls(jet_radius = config.jet_radius, **options)

    def hist_name(self, name: str) -> str:
        """ Full name of a histogram of this observable. """
        return f"{self.kind.name}/{name}"

    @abc.abstractmethod
    def book(self, hists: analysis_objects.HistogramCollection) -> None:
        """ Book the histograms of the observable. """
        ...

    @abc.abstractmethod
    def process(self, jets: Jets, particles: np.ndarray, weight: float,
                hists: analysis_objects.HistogramCollection) -> None:
        """ Process a single event.

        Args:
            jets: Selected jets, ordered by descending pt.
            particles: Particles which were used to find the jets.
            weight: Event weight.
            hists: Histograms to fill.
        """
        ...

    def finalize(self, hists: analysis_objects.HistogramCollection) -> None:
        """ Finalize the histograms after all events have been processed. """
        ...

def _validate_options(cls: Type[Observable], options: Mapping[str, Any], reserved: Sequence[str] = ("jet_radius",)) -> None:
    """ Check that every option corresponds to an argument of the observable. """
    parameters = inspect.signature(cls.__init__).parameters
    allowed = set(parameters) - {"self"} - set(reserved)
    unknown = set(options) - allowed
    if unknown:
        raise analysis_config.ConfigurationError(
            f"Unknown options {sorted(unknown)} for observable {cls.kind}. Allowed options: {sorted(allowed)}"
        )

#############
# Observables
#############
class JetSpectra(Observable):
    """ Jet spectra in slices of absolute rapidity, as well as in a few inclusive rapidity ranges.

    Args:
        jet_radius: Jet resolution parameter.
        particle_eta_max: Acceptance of the particles used for jet finding.
        jet_pt_min: Minimum jet pt.
        rapidity_edges: Upper edges of the absolute rapidity slices.
        inclusive_rapidity_max: Maximum absolute rapidity of each inclusive spectrum.
        pt_edges: Bin edges of the spectra.
    """
    kind = params.ObservableKind.jet_spectra

    def __init__(self, jet_radius: float, particle_eta_max: float = params.ATLAS_ETA_MAX, jet_pt_min: float = 20.0,
                 rapidity_edges: Sequence[float] = (0.3, 0.8, 1.2, 1.6, 2.1, 2.8),
                 inclusive_rapidity_max: Sequence[float] = (2.1, 2.8, 1.2),
                 pt_edges: Sequence[float] = (30, 40, 50, 56, 63, 70, 79, 89, 100, 112, 125, 141, 158, 177, 199,
                                              223, 251, 281, 316, 354, 398, 501, 630, 1000)):
        super().__init__(jet_radius = jet_radius)
        self.jet_input = params.JetInput(
            constituents = params.JetConstituents.all_particles,
            eta_max = particle_eta_max, jet_radius = jet_radius,
        )
        self.jet_selection = params.JetSelection(pt_min = jet_pt_min, abs_eta_max = particle_eta_max - jet_radius)
        self.rapidity_table = binning.EdgeTable(tuple(rapidity_edges))
        self.inclusive_rapidity_max = tuple(inclusive_rapidity_max)
        self.pt_edges = tuple(pt_edges)

        # Map from rapidity range index to histogram name.
        r_label = _radius_label(jet_radius)
        self._rapidity_hists = self.rapidity_table.map_indices({
            i: self.hist_name(f"JetpT_{self.rapidity_table.bin_label(i)}_{r_label}")
            for i in self.rapidity_table.indices()
        })
        self._inclusive_hists = [
            (y_max, self.hist_name(f"JetpT_0_{y_max:g}_{r_label}")) for y_max in self.inclusive_rapidity_max
        ]
        self._all_hist = self.hist_name(f"JetpT_{r_label}")

    def book(self, hists: analysis_objects.HistogramCollection) -> None:
        for name in self._rapidity_hists.values():
            hists.book(name, self.pt_edges)
        for _, name in self._inclusive_hists:
            hists.book(name, self.pt_edges)
        hists.book(self._all_hist, self.pt_edges)

    def process(self, jets: Jets, particles: np.ndarray, weight: float,
                hists: analysis_objects.HistogramCollection) -> None:
        for jet in jets:
            y = jet.abs_rapidity
            index = self.rapidity_table.find_bin(y)
            if index != binning.OUT_OF_RANGE:
                hists[self._rapidity_hists[index]].fill(jet.pt, weight)

            for y_max, name in self._inclusive_hists:
                if y <= y_max:
                    hists[name].fill(jet.pt, weight)
            hists[self._all_hist].fill(jet.pt, weight)

class DijetAsymmetry(Observable):
    """ Dijet momentum balance, xJ, in ranges of the leading jet pt.

    Every event with at least two jets records whether the dijet was accepted in the counter,
    which is required for normalizing by the dijet yield.

    Args:
        jet_radius: Jet resolution parameter.
        particle_eta_max: Acceptance of the particles used for jet finding.
        jet_pt_min: Minimum jet pt of the event level jets.
        dijet_eta_max: Maximum absolute pseudorapidity of the jets considered for the dijet.
        dijet_pt_min: Minimum pt of the jets considered for the dijet.
        delta_phi_min: Minimum azimuthal separation of the dijet.
        leading_pt_edges: Edges of the leading jet pt ranges. The first entry is the lower edge of the
            first range, so leading jets at or below it aren't stored.
        xj_bins: (number of bins, min, max) of the xJ histograms.
        jet_pt_edges: Bin edges of the leading and subleading jet spectra.
    """
    kind = params.ObservableKind.dijet_asymmetry

    def __init__(self, jet_radius: float, particle_eta_max: float = params.ATLAS_ETA_MAX, jet_pt_min: float = 20.0,
                 dijet_eta_max: float = 2.1, dijet_pt_min: float = 20.0,
                 delta_phi_min: float = dijet.DELTA_PHI_MIN,
                 leading_pt_edges: Sequence[float] = (10, 30, 60, 90, 100, 112, 126, 141, 158, 178, 200, 224,
                                                      251, 282, 316, 398, 562, 630, 1000),
                 xj_bins: Tuple[int, float, float] = (20, 0.32, 1.0),
                 jet_pt_edges: Sequence[float] = (100, 112, 126, 141, 158, 178, 200, 224, 251, 282, 316, 398,
                                                  562, 630, 1000)):
        super().__init__(jet_radius = jet_radius)
        self.jet_input = params.JetInput(
            constituents = params.JetConstituents.all_particles,
            eta_max = particle_eta_max, jet_radius = jet_radius,
        )
        self.jet_selection = params.JetSelection(pt_min = jet_pt_min, abs_eta_max = particle_eta_max - jet_radius)
        self.dijet_selection = params.JetSelection(pt_min = dijet_pt_min, abs_eta_max = dijet_eta_max)
        self.delta_phi_min = delta_phi_min
        self.leading_pt_table = binning.EdgeTable.from_bounds(tuple(leading_pt_edges))
        self.xj_bins = tuple(xj_bins)
        self.jet_pt_edges = tuple(jet_pt_edges)

        r_label = _radius_label(jet_radius)
        self._xj_hists = self.leading_pt_table.map_indices({
            i: self.hist_name(f"xJ_{self.leading_pt_table.bin_label(i)}_{r_label}")
            for i in self.leading_pt_table.indices()
        })
        self._leading_hist = self.hist_name(f"JetpT1_{r_label}")
        self._subleading_hist = self.hist_name(f"JetpT2_{r_label}")
        self._counter_hist = self.hist_name(f"xJ_counter_{r_label}")

    def book(self, hists: analysis_objects.HistogramCollection) -> None:
        n_bins, low, high = self.xj_bins
        for name in self._xj_hists.values():
            hists.book_linear(name, int(n_bins), low, high)
        hists.book(self._leading_hist, self.jet_pt_edges)
        hists.book(self._subleading_hist, self.jet_pt_edges)
        hists.book_linear(self._counter_hist, 2, -0.5, 1.5)

    def process(self, jets: Jets, particles: np.ndarray, weight: float,
                hists: analysis_objects.HistogramCollection) -> None:
        # Only events with a potential dijet are recorded.
        if len(jets) < 2:
            return

        pair = dijet.build_dijet(jets, selection = self.dijet_selection, delta_phi_min = self.delta_phi_min)
        if pair is None or not pair.accepted:
            hists[self._counter_hist].fill(0, weight)
            return

        hists[self._counter_hist].fill(1, weight)
        hists[self._leading_hist].fill(pair.leading.pt, weight)
        hists[self._subleading_hist].fill(pair.subleading.pt, weight)

        index = self.leading_pt_table.find_bin(pair.leading.pt)
        if index != binning.OUT_OF_RANGE:
            hists[self._xj_hists[index]].fill(pair.xj, weight)

class SubjetFragmentation(Observable):
    """ Leading and inclusive subjet fragmentation of charged jets.

    The leading subjet momentum fraction is filled for jets in the "High" and "HighD" jet pt ranges
    as well as for all jets ("Custom"), while every subjet is filled into the inclusive ("Full")
    histogram. The ranges overlap, so a jet may be counted in both ranges. Each radius has a
    counter which records the number of jets in each of the ranges for normalization.

    Args:
        jet_radius: Jet resolution parameter.
        recluster: Jet finder used for reclustering jet constituents.
        particle_eta_max: Acceptance of the particles used for jet finding.
        subjet_radii: Resolution parameters of the subjets.
        jet_pt_range: Open range of the jet pt.
        high_pt_max: Maximum jet pt of the "High" range.
        high_d_pt_min: Minimum jet pt of the "HighD" range.
        full_edges: Bin edges of the inclusive fragmentation.
        high_edges: Bin edges of the "High" leading fragmentation.
        high_d_edges: Bin edges of the "HighD" leading fragmentation.
        custom_bins: (number of bins, min, max) of the "Custom" leading fragmentation.
    """
    kind = params.ObservableKind.subjet_fragmentation

    def __init__(self, jet_radius: float, recluster: subjet_fragmentation.Reclusterer,
                 particle_eta_max: float = params.ALICE_ETA_MAX,
                 subjet_radii: Sequence[float] = (0.1, 0.2),
                 jet_pt_range: Tuple[float, float] = (80.0, 150.0),
                 high_pt_max: float = 120.0, high_d_pt_min: float = 100.0,
                 full_edges: Sequence[float] = (0., 0.02, 0.04, 0.1, 0.3, 0.6, 0.7, 0.77, 0.83, 0.89, 0.95, 1.00001),
                 high_edges: Sequence[float] = (0.6, 0.7, 0.77, 0.83, 0.89, 0.95, 1.00001),
                 high_d_edges: Sequence[float] = (0.7, 0.75, 0.77, 0.8, 0.83, 0.86, 0.9, 0.92, 0.95, 0.98, 1.00001),
                 custom_bins: Tuple[int, float, float] = (25, 0.50001, 1.00001)):
        super().__init__(jet_radius = jet_radius)
        self.recluster = recluster
        self.jet_input = params.JetInput(
            constituents = params.JetConstituents.charged,
            eta_max = particle_eta_max, jet_radius = jet_radius,
        )
        self.jet_selection = params.JetSelection(
            pt_min = jet_pt_range[0], pt_max = jet_pt_range[1], abs_eta_max = particle_eta_max - jet_radius,
        )
        self.subjet_radii = tuple(subjet_radii)
        self.high_pt_max = high_pt_max
        self.high_d_pt_min = high_d_pt_min
        self.full_edges = tuple(full_edges)
        self.high_edges = tuple(high_edges)
        self.high_d_edges = tuple(high_d_edges)
        self.custom_bins = tuple(custom_bins)

        # Map from subjet radius to the histogram names.
        self._hists: Dict[float, Dict[str, str]] = {}
        for r in self.subjet_radii:
            label = _compact_radius_label(r)
            self._hists[r] = {
                "full": self.hist_name(f"z_Full_r{label}"),
                "high": self.hist_name(f"z_High_r{label}"),
                "high_d": self.hist_name(f"z_HighD_r{label}"),
                "custom": self.hist_name(f"z_Custom_r{label}"),
                "counter": self.hist_name(f"Number_Jets_r{label}"),
            }

    @classmethod
    def from_config(cls, config: analysis_config.AnalysisConfig, options: Mapping[str, Any],
                    recluster: subjet_fragmentation.Reclusterer) -> "SubjetFragmentation":
        _validate_options(cls, options, reserved = ("jet_radius", "recluster"))
        return cls(jet_radius = config.jet_radius, recluster = recluster, **options)

    def book(self, hists: analysis_objects.HistogramCollection) -> None:
        n_bins, low, high = self.custom_bins
        for names in self._hists.values():
            hists.book(names["full"], self.full_edges)
            hists.book(names["high"], self.high_edges)
            hists.book(names["high_d"], self.high_d_edges)
            hists.book_linear(names["custom"], int(n_bins), low, high)
            hists.book_linear(names["counter"], 2, -0.5, 1.5)

    def process(self, jets: Jets, particles: np.ndarray, weight: float,
                hists: analysis_objects.HistogramCollection) -> None:
        for jet in jets:
            for r, names in self._hists.items():
                try:
                    fragmentation = subjet_fragmentation.subjet_momentum_fractions(
                        jet = jet, subjet_radius = r, recluster = self.recluster,
                    )
                except subjet_fragmentation.EmptyConstituentsError as e:
                    logger.debug(f"Skipping subjet fragmentation: {e}")
                    continue

                if jet.pt < self.high_pt_max:
                    hists[names["high"]].fill(fragmentation.z_leading, weight)
                    hists[names["counter"]].fill(0, weight)
                if jet.pt > self.high_d_pt_min:
                    hists[names["high_d"]].fill(fragmentation.z_leading, weight)
                    hists[names["counter"]].fill(1, weight)
                hists[names["custom"]].fill(fragmentation.z_leading, weight)
                hists[names["full"]].fill_many(fragmentation.z_inclusive, weight)

class EventPlaneSpectra(Observable):
    """ Charged jet spectra in- and out-of-plane relative to the symmetry planes of each harmonic.

    Jets are required to contain a leading track within the leading track pt range.

    Args:
        jet_radius: Jet resolution parameter.
        symmetry_planes: Symmetry plane angles stored by harmonic.
        legacy_second_harmonic_out_of_plane: If True, use the second order plane for the out-of-plane region
            of all harmonics.
        particle_eta_max: Acceptance of the particles used for jet finding.
        jet_pt_min: Minimum jet pt.
        leading_track_pt_range: Open pt range for the required leading track.
        pt_edges: Bin edges of the spectra.
    """
    kind = params.ObservableKind.event_plane_spectra

    def __init__(self, jet_radius: float, symmetry_planes: Mapping[int, float],
                 legacy_second_harmonic_out_of_plane: bool = False,
                 particle_eta_max: float = params.ALICE_ETA_MAX, jet_pt_min: float = 20.0,
                 leading_track_pt_range: Tuple[float, float] = (5.0, 100.0),
                 pt_edges: Sequence[float] = (20., 25., 35., 40., 50., 60., 80., 100., 120., 140., 200.)):
        super().__init__(jet_radius = jet_radius)
        self.jet_input = params.JetInput(
            constituents = params.JetConstituents.charged,
            eta_max = particle_eta_max, jet_radius = jet_radius,
        )
        self.jet_selection = params.JetSelection(pt_min = jet_pt_min, abs_eta_max = particle_eta_max - jet_radius)
        self.leading_track_pt_range = tuple(leading_track_pt_range)
        self.pt_edges = tuple(pt_edges)
        self.planes = {
            harmonic: event_plane.SymmetryPlaneSet(harmonic = harmonic, angle = angle)
            for harmonic, angle in sorted(symmetry_planes.items())
        }

        # Determine the out-of-plane reference for each harmonic.
        self._out_of_plane_reference: Dict[int, Optional[event_plane.SymmetryPlaneSet]] = {
            harmonic: None for harmonic in self.planes
        }
        if legacy_second_harmonic_out_of_plane:
            if 2 not in self.planes:
                raise analysis_config.ConfigurationError(
                    "The second order symmetry plane is required to determine the out-of-plane regions."
                )
            logger.warning(
                "Determining the out-of-plane regions of all harmonics relative to the second order symmetry plane."
            )
            for harmonic in self.planes:
                if harmonic != 2:
                    self._out_of_plane_reference[harmonic] = self.planes[2]

        r_label = _radius_label(jet_radius)
        self._hists = {
            harmonic: {
                params.PlaneOrientation.in_plane: self.hist_name(f"InPlaneSpec_N{harmonic}_{r_label}"),
                params.PlaneOrientation.out_of_plane: self.hist_name(f"OutPlaneSpec_N{harmonic}_{r_label}"),
            }
            for harmonic in self.planes
        }
        self._all_hist = self.hist_name(f"Spec_{r_label}")

    @classmethod
    def from_config(cls, config: analysis_config.AnalysisConfig, options: Mapping[str, Any],
                    recluster: subjet_fragmentation.Reclusterer) -> "EventPlaneSpectra":
        _validate_options(cls, options, reserved = ("jet_radius", "symmetry_planes", "legacy_second_harmonic_out_of_plane"))
        return cls(
            jet_radius = config.jet_radius,
            symmetry_planes = config.symmetry_planes,
            legacy_second_harmonic_out_of_plane = config.legacy_second_harmonic_out_of_plane,
            **options,
        )

    def book(self, hists: analysis_objects.HistogramCollection) -> None:
        for names in self._hists.values():
            for name in names.values():
                hists.book(name, self.pt_edges)
        hists.book(self._all_hist, self.pt_edges)

    def process(self, jets: Jets, particles: np.ndarray, weight: float,
                hists: analysis_objects.HistogramCollection) -> None:
        for jet in jets:
            if len(jet.constituents_in_pt_range(*self.leading_track_pt_range)) == 0:
                continue

            for harmonic, plane in self.planes.items():
                orientation = plane.classify(jet.phi, out_of_plane_reference = self._out_of_plane_reference[harmonic])
                name = self._hists[harmonic].get(orientation)
                if name is not None:
                    hists[name].fill(jet.pt, weight)
            hists[self._all_hist].fill(jet.pt, weight)

class HadronJet(Observable):
    """ Hadron triggered recoil jets for a set of trigger classes.

    For each class, the trigger pt, the pt of every jet for every trigger, and the pt of the away side
    jets for every trigger are recorded. The away side spectra are normalized by the jet acceptance
    during finalization.

    Args:
        jet_radius: Jet resolution parameter.
        trigger_classes: Trigger classes, either as objects or mappings with the trigger class fields.
        particle_eta_max: Acceptance of the particles used for jet finding.
        jet_pt_range: Closed range of the jet pt.
        away_side_min: Minimum azimuthal separation for a jet to be on the away side.
        pt_bins: (number of bins, min, max) of all histograms.
    """
    kind = params.ObservableKind.hadron_jet

    def __init__(self, jet_radius: float,
                 trigger_classes: Sequence[Any] = hadron_jet.DEFAULT_TRIGGER_CLASSES,
                 particle_eta_max: float = params.ALICE_ETA_MAX,
                 jet_pt_range: Tuple[float, float] = (0.15, 100.0),
                 away_side_min: float = hadron_jet.AWAY_SIDE_DELTA_PHI_MIN,
                 pt_bins: Tuple[int, float, float] = (100, 0.0, 100.0)):
        super().__init__(jet_radius = jet_radius)
        self.jet_eta_max = particle_eta_max - jet_radius
        if self.jet_eta_max <= 0:
            raise analysis_config.ConfigurationError(
                f"Jet radius {jet_radius} leaves no jet acceptance within |eta| < {particle_eta_max}."
            )
        self.jet_input = params.JetInput(
            constituents = params.JetConstituents.charged,
            eta_max = particle_eta_max, jet_radius = jet_radius,
        )
        self.jet_selection = params.JetSelection(
            pt_min = jet_pt_range[0], pt_max = jet_pt_range[1], abs_eta_max = self.jet_eta_max, inclusive_pt = True,
        )
        self.trigger_classes = [
            c if isinstance(c, params.TriggerClass) else params.TriggerClass.from_config(c) for c in trigger_classes
        ]
        names = [c.name for c in self.trigger_classes]
        if len(set(names)) != len(names):
            raise analysis_config.ConfigurationError(f"Trigger class names must be unique. Received: {names}")
        self.away_side_min = away_side_min
        self.pt_bins = tuple(pt_bins)

        self._hists = {
            c.name: {
                "triggers": self.hist_name(f"hNtrig_{c.name}"),
                "all": self.hist_name(f"Njet_all_{c.name}"),
                "away_side": self.hist_name(f"Njet_{c.name}"),
            }
            for c in self.trigger_classes
        }

    def book(self, hists: analysis_objects.HistogramCollection) -> None:
        n_bins, low, high = self.pt_bins
        for names in self._hists.values():
            for name in names.values():
                hists.book_linear(name, int(n_bins), low, high)

    def process(self, jets: Jets, particles: np.ndarray, weight: float,
                hists: analysis_objects.HistogramCollection) -> None:
        for trigger_class in self.trigger_classes:
            counts = hadron_jet.count_hadron_jet(
                particles = particles, jets = jets, trigger_class = trigger_class, away_side_min = self.away_side_min,
            )
            names = self._hists[trigger_class.name]
            hists[names["triggers"]].fill_many(counts.trigger_pts, weight)
            hists[names["all"]].fill_many(counts.all_jet_pts, weight)
            hists[names["away_side"]].fill_many(counts.away_side_jet_pts, weight)

    def finalize(self, hists: analysis_objects.HistogramCollection) -> None:
        """ Normalize the away side jet spectra by the jet acceptance. """
        scale_factor = 1.0 / (2 * self.jet_eta_max)
        for names in self._hists.values():
            hists[names["away_side"]].scale(scale_factor)

class JetPhiDistribution(Observable):
    """ Jet azimuthal distributions in ranges of jet pt, which are used to extract the jet vn.

    Args:
        jet_radius: Jet resolution parameter.
        particle_eta_max: Acceptance of the particles used for jet finding.
        jet_pt_min: Minimum jet pt.
        jet_rapidity_max: Maximum jet absolute rapidity.
        pt_edges: Edges of the jet pt ranges. The first entry is the lower edge of the first range, so
            jets at or below it aren't stored.
        n_phi_bins: Number of bins in [0, 2pi).
    """
    kind = params.ObservableKind.jet_phi_distribution

    def __init__(self, jet_radius: float, particle_eta_max: float = params.ATLAS_ETA_MAX,
                 jet_pt_min: float = 70.0, jet_rapidity_max: float = 1.2,
                 pt_edges: Sequence[float] = (71., 79., 89., 100., 126., 158., 200., 251., 316., 398., 500., 650., 1000.),
                 n_phi_bins: int = 64):
        super().__init__(jet_radius = jet_radius)
        self.jet_input = params.JetInput(
            constituents = params.JetConstituents.all_particles,
            eta_max = particle_eta_max, jet_radius = jet_radius,
        )
        self.jet_selection = params.JetSelection(
            pt_min = jet_pt_min, abs_eta_max = particle_eta_max - jet_radius, abs_rapidity_max = jet_rapidity_max,
        )
        self.pt_table = binning.EdgeTable.from_bounds(tuple(pt_edges))
        self.n_phi_bins = n_phi_bins

        r_label = _radius_label(jet_radius)
        self._phi_hists = self.pt_table.map_indices({
            i: self.hist_name(f"{self.pt_table.bin_label(i)}_phi_{r_label}") for i in self.pt_table.indices()
        })

    def book(self, hists: analysis_objects.HistogramCollection) -> None:
        for name in self._phi_hists.values():
            hists.book_linear(name, self.n_phi_bins, 0.0, event_plane.TWO_PI)

    def process(self, jets: Jets, particles: np.ndarray, weight: float,
                hists: analysis_objects.HistogramCollection) -> None:
        for jet in jets:
            index = self.pt_table.find_bin(jet.pt)
            if index != binning.OUT_OF_RANGE:
                hists[self._phi_hists[index]].fill(event_plane.normalize_angle(jet.phi), weight)

class JetMass(Observable):
    """ Jet mass in ranges of jet pt, using a fixed jet resolution parameter.

    Args:
        jet_radius: Jet resolution parameter of the analysis. Unused, since the mass uses a fixed radius.
        mass_jet_radius: Jet resolution parameter used for the jet mass.
        particle_eta_max: Acceptance of the particles used for jet finding.
        jet_pt_min: Minimum jet pt.
        pt_edges: Edges of the half open jet pt ranges. Jets above the last edge are stored in an
            additional range.
        mass_bins: (number of bins, min, max) of the jet mass histograms.
        spectrum_eta_max: Maximum jet absolute pseudorapidity of the jet spectrum.
        spectrum_pt_min: Minimum jet pt of the jet spectrum.
        spectrum_bins: (number of bins, min, max) of the jet spectrum.
    """
    kind = params.ObservableKind.jet_mass

    def __init__(self, jet_radius: float, mass_jet_radius: float = 0.4,
                 particle_eta_max: float = params.ALICE_ETA_MAX, jet_pt_min: float = 0.15,
                 pt_edges: Sequence[float] = (60., 80., 100., 120., 140., 160., 180., 200., 220., 240., 260., 280., 300.),
                 mass_bins: Tuple[int, float, float] = (200, 0.0, 100.0),
                 spectrum_eta_max: float = 0.5, spectrum_pt_min: float = 20.0,
                 spectrum_bins: Tuple[int, float, float] = (50, 20.0, 520.0)):
        super().__init__(jet_radius = mass_jet_radius)
        self.particle_eta_max = particle_eta_max
        self.jet_input = params.JetInput(
            constituents = params.JetConstituents.all_particles,
            eta_max = particle_eta_max, jet_radius = mass_jet_radius,
        )
        self.jet_selection = params.JetSelection(pt_min = jet_pt_min, abs_eta_max = particle_eta_max)
        self.pt_edges = np.array(pt_edges, dtype = np.float64)
        self.mass_bins = tuple(mass_bins)
        self.spectrum_selection = params.JetSelection(pt_min = spectrum_pt_min, abs_eta_max = spectrum_eta_max)
        self.spectrum_bins = tuple(spectrum_bins)

        # Index 0 is below the first edge, so it is never stored.
        self._mass_hists = {
            i: self.hist_name(f"Jet_Mass_{low:g}_{high:g}")
            for i, (low, high) in enumerate(zip(self.pt_edges[:-1], self.pt_edges[1:]), start = 1)
        }
        self._mass_hists[len(self.pt_edges)] = self.hist_name(f"Jet_Mass_{self.pt_edges[-1]:g}")
        self._spectrum_hist = self.hist_name(f"JetpT_NSub_{_compact_radius_label(mass_jet_radius)}")

    def book(self, hists: analysis_objects.HistogramCollection) -> None:
        n_bins, low, high = self.mass_bins
        for name in self._mass_hists.values():
            hists.book_linear(name, int(n_bins), low, high)
        n_bins, low, high = self.spectrum_bins
        hists.book_linear(self._spectrum_hist, int(n_bins), low, high)

    def process(self, jets: Jets, particles: np.ndarray, weight: float,
                hists: analysis_objects.HistogramCollection) -> None:
        for jet in jets:
            if self.spectrum_selection.accepts(jet):
                hists[self._spectrum_hist].fill(jet.pt, weight)

            if jet.mass < 0 or not jet.abs_eta < self.particle_eta_max - self.jet_radius:
                continue
            index = int(np.searchsorted(self.pt_edges, jet.pt, side = "right"))
            name = self._mass_hists.get(index)
            if name is not None:
                hists[name].fill(jet.mass, weight)

class ExtraSpectra(Observable):
    """ Additional jet spectra in the CMS and ALICE acceptances.

    The ALICE spectrum is measured both with and without requiring a leading track with
    pt > 10 R + 3 GeV.

    Args:
        jet_radius: Jet resolution parameter.
        particle_eta_max: Acceptance of the particles used for jet finding.
        jet_pt_min: Minimum jet pt.
        jet_rapidity_max: Maximum absolute rapidity of the general jet spectrum.
        cms_eta_max: Maximum absolute pseudorapidity of the CMS spectrum.
        pt_edges: Bin edges of the general jet spectrum.
        alice_pt_edges: Bin edges of the ALICE spectra.
        cms_pt_edges: Bin edges of the CMS spectrum.
    """
    kind = params.ObservableKind.extra_spectra

    def __init__(self, jet_radius: float, particle_eta_max: float = params.ATLAS_ETA_MAX, jet_pt_min: float = 40.0,
                 jet_rapidity_max: float = 1.2, cms_eta_max: float = 2.0,
                 pt_edges: Sequence[float] = (71., 79., 89., 100., 126., 158., 200., 251., 316., 398., 500., 650., 1000.),
                 alice_pt_edges: Sequence[float] = (40, 50, 60, 70, 80, 100, 120, 140),
                 cms_pt_edges: Sequence[float] = (200, 250, 300, 400, 500, 1000)):
        super().__init__(jet_radius = jet_radius)
        self.jet_input = params.JetInput(
            constituents = params.JetConstituents.all_particles,
            eta_max = particle_eta_max, jet_radius = jet_radius,
        )
        self.jet_selection = params.JetSelection(pt_min = jet_pt_min, abs_eta_max = particle_eta_max - jet_radius)
        self.jet_rapidity_max = jet_rapidity_max
        self.cms_eta_max = cms_eta_max
        # Only consider the ALICE acceptance for reasonable R.
        if jet_radius <= 0.4:
            self.alice_eta_max = 0.7 - jet_radius
        else:
            self.alice_eta_max = particle_eta_max - jet_radius
        self.leading_track_pt_min = 10 * jet_radius + 3
        self.pt_edges = tuple(pt_edges)
        self.alice_pt_edges = tuple(alice_pt_edges)
        self.cms_pt_edges = tuple(cms_pt_edges)

        r_label = _radius_label(jet_radius)
        self._jet_hist = self.hist_name(f"JetpT_{r_label}")
        self._alice_hist = self.hist_name(f"ALICEpT_{r_label}")
        self._alice_no_leading_hist = self.hist_name(f"ALICEpT_nolead_{r_label}")
        self._cms_hist = self.hist_name(f"CMSpT_{r_label}")

    def book(self, hists: analysis_objects.HistogramCollection) -> None:
        hists.book(self._jet_hist, self.pt_edges)
        hists.book(self._alice_hist, self.alice_pt_edges)
        hists.book(self._alice_no_leading_hist, self.alice_pt_edges)
        hists.book(self._cms_hist, self.cms_pt_edges)

    def process(self, jets: Jets, particles: np.ndarray, weight: float,
                hists: analysis_objects.HistogramCollection) -> None:
        for jet in jets:
            if jet.abs_rapidity <= self.jet_rapidity_max:
                hists[self._jet_hist].fill(jet.pt, weight)
            if jet.abs_eta <= self.cms_eta_max:
                hists[self._cms_hist].fill(jet.pt, weight)
            if jet.abs_eta <= self.alice_eta_max:
                hists[self._alice_no_leading_hist].fill(jet.pt, weight)
                if len(jet.constituents_in_pt_range(self.leading_track_pt_min)) > 0:
                    hists[self._alice_hist].fill(jet.pt, weight)

# Map from observable kind to the class which implements it.
OBSERVABLES: Dict[params.ObservableKind, Type[Observable]] = {
    cls.kind: cls for cls in [
        JetSpectra, DijetAsymmetry, SubjetFragmentation, EventPlaneSpectra,
        HadronJet, JetPhiDistribution, JetMass, ExtraSpectra,
    ]
}

##########
# Pipeline
##########
def select_particles(particles: np.ndarray, jet_input: params.JetInput) -> np.ndarray:
    """ Select the particles which are used to find jets for a jet input.

    Args:
        particles: All particles of the event.
        jet_input: Jet input which defines the selection.
    Returns:
        The selected particles.
    """
    selected = np.abs(particles["eta"]) < jet_input.eta_max
    if jet_input.constituents == params.JetConstituents.charged:
        selected &= particle_id.is_charged(particles["charge"])
    return particles[selected]

class ObservablePipeline:
    """ Route each event to the enabled observables.

    Args:
        config: Analysis configuration.
        jet_finder: Jet finder which takes the particles and the resolution parameter. Default: None,
            which uses anti-kt via ``jet_observables.event_gen.clustering``.
        recluster: Jet finder used to recluster jet constituents. Default: None, which uses kt via
            ``jet_observables.event_gen.clustering``.

    Attributes:
        config: Analysis configuration.
        observables: Enabled observables.
        hists: Histograms of all observables.
        n_events: Number of processed events.
        finalized: True if the observables have been finalized.
    """
    def __init__(self, config: analysis_config.AnalysisConfig,
                 jet_finder: Optional[JetFinder] = None,
                 recluster: Optional[subjet_fragmentation.Reclusterer] = None):
        if jet_finder is None or recluster is None:
            from jet_observables.event_gen import clustering
            if jet_finder is None:
                jet_finder = clustering.find_jets
            if recluster is None:
                recluster = clustering.recluster
        self.config = config
        self.jet_finder = jet_finder
        self.recluster = recluster
        self.n_events = 0
        self.finalized = False

        if not config.observables:
            raise analysis_config.ConfigurationError("No observables are enabled.")
        self.observables: List[Observable] = [
            OBSERVABLES[kind].from_config(config = config, options = options, recluster = recluster)
            for kind, options in config.observables.items()
        ]

        # Book the histograms.
        self.hists = analysis_objects.HistogramCollection()
        for observable in self.observables:
            observable.book(self.hists)
            logger.info(f"Enabled {observable.kind.display_str()} ({observable.kind})")
        logger.info(f"Booked {len(self.hists)} histograms.")

    def process_event(self, event: generator.Event) -> None:
        """ Process a single event.

        Jets are found once for each distinct jet input and then shared between the observables.

        Args:
            event: Event level information and the particles of the event.
        Raises:
            RuntimeError: If the observables have already been finalized.
        """
        if self.finalized:
            raise RuntimeError("Cannot process events after the observables have been finalized.")
        event_properties, particles = event
        inputs: Dict[params.JetInput, Tuple[np.ndarray, List[analysis_objects.Jet]]] = {}
        for observable in self.observables:
            jet_input = observable.jet_input
            if jet_input not in inputs:
                input_particles = select_particles(particles, jet_input)
                jets = analysis_objects.jets_by_pt(self.jet_finder(input_particles, jet_input.jet_radius))
                inputs[jet_input] = (input_particles, jets)
            input_particles, jets = inputs[jet_input]

            selected_jets = [j for j in jets if observable.jet_selection.accepts(j)]
            observable.process(
                jets = selected_jets, particles = input_particles,
                weight = event_properties.weight, hists = self.hists,
            )

        self.n_events += 1

    def finalize(self) -> analysis_objects.HistogramCollection:
        """ Finalize all observables.

        The observables are only finalized once, so further calls return the same histograms.

        Returns:
            The finalized histograms.
        """
        if self.finalized:
            logger.warning("The observables were already finalized. Returning the existing histograms.")
            return self.hists
        for observable in self.observables:
            observable.finalize(self.hists)
        self.finalized = True
        logger.info(f"Finalized {len(self.observables)} observables after {self.n_events} events.")
        return self.hists
