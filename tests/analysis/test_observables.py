#!/usr/bin/env python

""" Tests for the observables and the pipeline which routes events to them. """

import logging
import numpy as np
import pytest

from jet_observables.analysis import observables
from jet_observables.base import analysis_config
from jet_observables.base import analysis_objects
from jet_observables.base import params
from jet_observables.event_gen import generator

# Setup logger
logger = logging.getLogger(__name__)

def one_jet_per_particle(particles, R):
    """ Fake jet finder which turns each particle into a jet. """
    return [
        analysis_objects.Jet(
            pt = float(p["pT"]), eta = float(p["eta"]),
            rapidity = float(analysis_objects.rapidity(p["pT"], p["eta"], p["mass"])),
            phi = float(p["phi"]), mass = float(p["mass"]),
            constituents = particles[i:i + 1],
        )
        for i, p in enumerate(particles)
    ]

def one_subjet_per_constituent(constituents, R):
    """ Fake reclusterer which turns each constituent into a subjet. """
    return one_jet_per_particle(constituents, R)

def _event(records, weight = 1.0):
    """ Create an event from (pT, eta, phi[, mass, pid, charge]) records. Defaults to massless charged pions. """
    full_records = []
    for r in records:
        mass, pid, charge = r[3:] if len(r) > 3 else (0.0, 211, 1)
        full_records.append((r[0], r[1], r[2], mass, pid, charge))
    return generator.EventProperties(event_number = 0, weight = weight), analysis_objects.particles_from_records(full_records)

def _pipeline(observable_options, jet_finder = one_jet_per_particle, **kwargs):
    config = analysis_config.AnalysisConfig(observables = observable_options, **kwargs)
    return observables.ObservablePipeline(
        config = config, jet_finder = jet_finder, recluster = one_subjet_per_constituent,
    )

def _filled(hists, name):
    return hists[name].sum_of_weights

def test_every_kind_is_implemented(logging_mixin):
    """ Test that each observable kind has an implementation. """
    assert set(observables.OBSERVABLES) == set(params.ObservableKind)
    for kind, cls in observables.OBSERVABLES.items():
        assert cls.kind == kind

def test_no_observables(logging_mixin):
    """ Test that a pipeline without any observables is rejected. """
    with pytest.raises(analysis_config.ConfigurationError):
        _pipeline({})

@pytest.mark.parametrize("options", [
    {"jet_spectra": {"not_an_option": 1}},
    {"jet_spectra": {"jet_radius": 0.2}},
    {"subjet_fragmentation": {"recluster": None}},
    {"event_plane_spectra": {"symmetry_planes": {2: 0.0}}},
], ids = ["Unknown option", "Global jet radius", "Reclusterer", "Global symmetry planes"])
def test_invalid_options(logging_mixin, options):
    """ Test that options which aren't specific to the observable are rejected. """
    with pytest.raises(analysis_config.ConfigurationError):
        _pipeline(options)

def test_all_observables_together(logging_mixin):
    """ Test that every observable can be booked at the same time without name clashes. """
    pipeline = _pipeline({kind.name: {} for kind in params.ObservableKind})

    assert len(pipeline.observables) == len(params.ObservableKind)
    assert "jet_spectra/JetpT_R0.4" in pipeline.hists
    assert "extra_spectra/JetpT_R0.4" in pipeline.hists

def test_default_jet_finder(logging_mixin):
    """ Test that the pipeline uses the FastJet based jet finder by default. """
    from jet_observables.event_gen import clustering
    pipeline = observables.ObservablePipeline(config = analysis_config.AnalysisConfig(observables = {"jet_spectra": {}}))

    assert pipeline.jet_finder is clustering.find_jets
    assert pipeline.recluster is clustering.recluster

def test_jets_are_shared_between_observables(logging_mixin, mocker):
    """ Test that the jets are found once for each distinct jet input. """
    jet_finder = mocker.Mock(side_effect = one_jet_per_particle)
    pipeline = _pipeline(
        {"jet_spectra": {}, "dijet_asymmetry": {}, "hadron_jet": {}}, jet_finder = jet_finder,
    )
    pipeline.process_event(_event([(50, 0.0, 0.0), (30, 0.5, 3.0)]))

    # jet_spectra and dijet_asymmetry share the jet input.
    assert jet_finder.call_count == 2
    assert sorted(call[0][1] for call in jet_finder.call_args_list) == [0.4, 0.4]
    assert pipeline.n_events == 1

def test_particle_selection(logging_mixin):
    """ Test the particle level selection for each jet input. """
    _, particles = _event([
        (10, 0.0, 0.0),
        (10, 1.5, 0.0),
        (10, 0.0, 0.0, 0.0, 22, 0),
        (10, 3.5, 0.0),
    ])
    charged = params.JetInput(constituents = params.JetConstituents.charged, eta_max = 0.9, jet_radius = 0.4)
    all_particles = params.JetInput(constituents = params.JetConstituents.all_particles, eta_max = 3.2, jet_radius = 0.4)

    assert len(observables.select_particles(particles, charged)) == 1
    assert len(observables.select_particles(particles, all_particles)) == 3

class TestJetSpectra:
    def test_booking(self, logging_mixin):
        pipeline = _pipeline({"jet_spectra": {}})
        names = set(pipeline.hists)

        assert "jet_spectra/JetpT_0_0.3_R0.4" in names
        assert "jet_spectra/JetpT_2.1_2.8_R0.4" in names
        assert {"jet_spectra/JetpT_0_2.1_R0.4", "jet_spectra/JetpT_0_2.8_R0.4", "jet_spectra/JetpT_0_1.2_R0.4"} < names
        # Six rapidity slices, three inclusive ranges and all jets.
        assert len(names) == 10

    def test_routing(self, logging_mixin):
        """ Test that a jet is filled into its rapidity slice and each inclusive range that contains it. """
        pipeline = _pipeline({"jet_spectra": {}})
        pipeline.process_event(_event([(45, 1.0, 0.0), (15, 0.0, 1.0), (45, 2.9, 1.0)], weight = 2.0))
        hists = pipeline.hists

        assert _filled(hists, "jet_spectra/JetpT_0.8_1.2_R0.4") == 2.0
        assert _filled(hists, "jet_spectra/JetpT_0_1.2_R0.4") == 2.0
        assert _filled(hists, "jet_spectra/JetpT_0_2.1_R0.4") == 2.0
        assert _filled(hists, "jet_spectra/JetpT_0_2.8_R0.4") == 2.0
        assert _filled(hists, "jet_spectra/JetpT_R0.4") == 2.0
        assert _filled(hists, "jet_spectra/JetpT_0_0.3_R0.4") == 0.0
        # The weight is also propagated to the errors.
        assert np.sum(hists["jet_spectra/JetpT_R0.4"].errors_squared) == 4.0

class TestDijetAsymmetry:
    def test_accepted_dijet(self, logging_mixin):
        pipeline = _pipeline({"dijet_asymmetry": {}})
        pipeline.process_event(_event([(100, 0.0, 0.0), (40, 0.0, np.pi)]))
        hists = pipeline.hists

        assert list(hists["dijet_asymmetry/xJ_counter_R0.4"].y) == [0, 1]
        assert _filled(hists, "dijet_asymmetry/JetpT1_R0.4") == 1
        # 40 is below the binning of the jet spectrum.
        assert _filled(hists, "dijet_asymmetry/JetpT2_R0.4") == 0
        xj = hists["dijet_asymmetry/xJ_90_100_R0.4"]
        assert _filled(hists, "dijet_asymmetry/xJ_90_100_R0.4") == 1
        assert xj.y[xj.find_bin(0.4)] == 1

    @pytest.mark.parametrize("records", [
        [(100, 0.0, 0.0), (40, 0.0, np.pi / 2)],
        [(100, 2.5, 0.0), (40, 0.0, np.pi)],
    ], ids = ["Not back-to-back", "Outside of the dijet acceptance"])
    def test_rejected_dijet(self, logging_mixin, records):
        """ Test that events with two jets always record the outcome. """
        pipeline = _pipeline({"dijet_asymmetry": {}})
        pipeline.process_event(_event(records))
        hists = pipeline.hists

        assert list(hists["dijet_asymmetry/xJ_counter_R0.4"].y) == [1, 0]
        assert _filled(hists, "dijet_asymmetry/JetpT1_R0.4") == 0

    def test_single_jet(self, logging_mixin):
        """ Test that events without two jets aren't recorded at all. """
        pipeline = _pipeline({"dijet_asymmetry": {}})
        pipeline.process_event(_event([(100, 0.0, 0.0), (10, 0.0, np.pi)]))

        assert _filled(pipeline.hists, "dijet_asymmetry/xJ_counter_R0.4") == 0

    def test_leading_pt_ranges(self, logging_mixin):
        """ Test that the first leading pt edge is the lower edge of the first range. """
        pipeline = _pipeline({"dijet_asymmetry": {}})
        names = [name for name in pipeline.hists if name.startswith("dijet_asymmetry/xJ_") and "counter" not in name]

        assert len(names) == 18
        assert "dijet_asymmetry/xJ_10_30_R0.4" in names
        assert "dijet_asymmetry/xJ_0_10_R0.4" not in names

        pipeline.process_event(_event([(25, 0.0, 0.0), (21, 0.0, np.pi)]))
        assert _filled(pipeline.hists, "dijet_asymmetry/xJ_10_30_R0.4") == 1

class TestSubjetFragmentation:
    def test_fragmentation(self, logging_mixin):
        pipeline = _pipeline({"subjet_fragmentation": {}})
        pipeline.process_event(_event([(110, 0.0, 0.0), (90, 0.0, np.pi), (200, 0.0, 1.0)]))
        hists = pipeline.hists

        for label in ["01", "02"]:
            # Both jets are in the "High" range, but only the 110 GeV jet is in the "HighD" range.
            assert _filled(hists, f"subjet_fragmentation/z_High_r{label}") == 2
            assert _filled(hists, f"subjet_fragmentation/z_HighD_r{label}") == 1
            assert _filled(hists, f"subjet_fragmentation/z_Custom_r{label}") == 2
            assert _filled(hists, f"subjet_fragmentation/z_Full_r{label}") == 2
            assert list(hists[f"subjet_fragmentation/Number_Jets_r{label}"].y) == [2, 1]
            # The single subjet carries all of the momentum.
            assert hists[f"subjet_fragmentation/z_High_r{label}"].y[-1] == 2

    def test_jet_without_constituents(self, logging_mixin, caplog):
        """ Test that a jet without constituents is skipped. """
        def jet_finder(particles, R):
            return [analysis_objects.Jet(pt = 110, eta = 0.0, rapidity = 0.0, phi = 0.0, mass = 0.0)]

        pipeline = _pipeline({"subjet_fragmentation": {}}, jet_finder = jet_finder)
        pipeline.process_event(_event([(110, 0.0, 0.0)]))

        assert _filled(pipeline.hists, "subjet_fragmentation/z_Full_r01") == 0
        assert "Skipping subjet fragmentation" in caplog.text

class TestEventPlaneSpectra:
    def test_orientation(self, logging_mixin):
        pipeline = _pipeline({"event_plane_spectra": {}}, symmetry_planes = {2: 0.0, 3: 0.0, 4: 0.0})
        pipeline.process_event(_event([(30, 0.0, np.pi / 8), (45, 0.0, np.pi / 2), (150, 0.0, 0.0)]))
        hists = pipeline.hists

        assert _filled(hists, "event_plane_spectra/InPlaneSpec_N2_R0.4") == 1
        assert _filled(hists, "event_plane_spectra/OutPlaneSpec_N2_R0.4") == 1
        # The 150 GeV jet doesn't have a leading track within the required range.
        assert _filled(hists, "event_plane_spectra/Spec_R0.4") == 2

    def test_legacy_out_of_plane(self, logging_mixin, caplog):
        """ Test the out-of-plane regions relative to the second order plane. """
        planes = {2: np.pi / 2, 3: 0.0}
        phi = np.pi / 2 + np.pi / 3
        pipeline = _pipeline({"event_plane_spectra": {}}, symmetry_planes = planes)
        legacy_pipeline = _pipeline(
            {"event_plane_spectra": {}}, symmetry_planes = planes, legacy_second_harmonic_out_of_plane = True,
        )
        for p in [pipeline, legacy_pipeline]:
            p.process_event(_event([(30, 0.0, phi)]))

        assert _filled(pipeline.hists, "event_plane_spectra/OutPlaneSpec_N3_R0.4") == 0
        assert _filled(legacy_pipeline.hists, "event_plane_spectra/OutPlaneSpec_N3_R0.4") == 1
        assert "second order symmetry plane" in caplog.text

    def test_legacy_requires_second_harmonic(self, logging_mixin):
        with pytest.raises(analysis_config.ConfigurationError):
            _pipeline({"event_plane_spectra": {}}, symmetry_planes = {3: 0.0},
                      legacy_second_harmonic_out_of_plane = True)

class TestHadronJet:
    def test_counts_and_normalization(self, logging_mixin):
        pipeline = _pipeline({"hadron_jet": {}}, jet_radius = 0.2)
        pipeline.process_event(_event([(25, 0.0, 0.0), (10, 0.0, np.pi), (10, 0.0, 0.0, 0.0, 22, 0)]))
        hists = pipeline.hists

        assert _filled(hists, "hadron_jet/hNtrig_20_50") == 1
        assert _filled(hists, "hadron_jet/hNtrig_1") == 2
        # Every jet for every trigger.
        assert _filled(hists, "hadron_jet/Njet_all_20_50") == 2

    def test_finalize_only_once(self, logging_mixin):
        """ Test that finalizing again doesn't normalize the spectra again. """
        pipeline = _pipeline({"hadron_jet": {}}, jet_radius = 0.2)
        pipeline.process_event(_event([(25, 0.0, 0.0), (10, 0.0, np.pi)]))

        pipeline.finalize()
        pipeline.finalize()
        assert pipeline.finalized is True
        assert _filled(pipeline.hists, "hadron_jet/Njet_20_50") == pytest.approx(1 / (2 * (0.9 - 0.2)))

        with pytest.raises(RuntimeError):
            pipeline.process_event(_event([(25, 0.0, 0.0)]))

    @pytest.mark.parametrize("jet_pt, expected", [
        (100, 1),
        (100.5, 0),
    ], ids = ["At pt max", "Above pt max"])
    def test_jet_pt_bounds_are_inclusive(self, logging_mixin, jet_pt, expected):
        pipeline = _pipeline({"hadron_jet": {}}, jet_radius = 0.2)
        pipeline.process_event(_event([(25, 0.0, 0.0), (jet_pt, 0.0, np.pi)]))
        hists = pipeline.hists

        # 100 is the upper edge of the histograms, so count the entries rather than the stored values.
        assert pipeline.hists["hadron_jet/Njet_20_50"].entries == expected
        assert _filled(hists, "hadron_jet/Njet_20_50") == 1

        pipeline.finalize()
        assert _filled(hists, "hadron_jet/Njet_20_50") == pytest.approx(1 / (2 * (0.9 - 0.2)))
        assert _filled(hists, "hadron_jet/Njet_all_20_50") == 2

    def test_configured_trigger_classes(self, logging_mixin):
        pipeline = _pipeline({"hadron_jet": {"trigger_classes": [{"name": "5_10", "pt_min": 5, "pt_max": 10}]}})
        assert sorted(pipeline.hists) == ["hadron_jet/Njet_5_10", "hadron_jet/Njet_all_5_10", "hadron_jet/hNtrig_5_10"]

    @pytest.mark.parametrize("options, kwargs", [
        ({"trigger_classes": [{"name": "a"}, {"name": "a"}]}, {}),
        ({}, {"jet_radius": 0.9}),
    ], ids = ["Duplicated trigger class", "No jet acceptance"])
    def test_invalid(self, logging_mixin, options, kwargs):
        with pytest.raises(analysis_config.ConfigurationError):
            _pipeline({"hadron_jet": options}, **kwargs)

class TestJetPhiDistribution:
    def test_phi_distribution(self, logging_mixin):
        pipeline = _pipeline({"jet_phi_distribution": {}})
        pipeline.process_event(_event([(80, 0.0, -0.05), (80, 1.5, 0.0), (60, 0.0, 0.0)]))
        h = pipeline.hists["jet_phi_distribution/79_89_phi_R0.4"]

        assert h.n_bins == 64
        assert h.sum_of_weights == 1
        # The angle is normalized into [0, 2pi)
        assert h.y[-1] == 1

    def test_lower_pt_edge(self, logging_mixin):
        """ Test that jets at or below the first pt edge aren't stored. """
        pipeline = _pipeline({"jet_phi_distribution": {}})
        pipeline.process_event(_event([(70.5, 0.0, 1.0), (71.5, 0.0, 2.0)]))
        hists = pipeline.hists

        assert "jet_phi_distribution/0_71_phi_R0.4" not in hists
        assert len(hists) == 12
        assert sum(_filled(hists, name) for name in hists) == 1
        assert _filled(hists, "jet_phi_distribution/71_79_phi_R0.4") == 1

class TestJetMass:
    def test_mass(self, logging_mixin, mocker):
        jet_finder = mocker.Mock(side_effect = one_jet_per_particle)
        pipeline = _pipeline({"jet_mass": {}}, jet_finder = jet_finder, jet_radius = 0.2)
        pipeline.process_event(_event([
            (310, 0.0, 0.0, 10.0, 211, 1),
            (60, 0.1, 2.0, 5.0, 211, 1),
            (70, 0.7, 4.0, 5.0, 211, 1),
        ]))
        hists = pipeline.hists

        # The jet mass always uses R = 0.4
        assert jet_finder.call_args[0][1] == 0.4
        assert _filled(hists, "jet_mass/Jet_Mass_300") == 1
        assert _filled(hists, "jet_mass/Jet_Mass_60_80") == 1
        # The 70 GeV jet is outside of the acceptance of both.
        assert _filled(hists, "jet_mass/JetpT_NSub_04") == 2

class TestExtraSpectra:
    def test_spectra(self, logging_mixin):
        pipeline = _pipeline({"extra_spectra": {}})
        pipeline.process_event(_event([
            (75, 0.1, 0.0, 0.0, 211, 1),
            (210, 1.9, 1.0, 0.0, 211, 1),
        ]))
        hists = pipeline.hists

        assert _filled(hists, "extra_spectra/JetpT_R0.4") == 1
        assert _filled(hists, "extra_spectra/CMSpT_R0.4") == 1
        # The leading track requirement is 10 R + 3 = 7 GeV.
        assert _filled(hists, "extra_spectra/ALICEpT_nolead_R0.4") == 1
        assert _filled(hists, "extra_spectra/ALICEpT_R0.4") == 1
