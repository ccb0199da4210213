#!/usr/bin/env python

""" Observable extraction for the jet observables analysis. """

__all__ = [
    "binning",
    "dijet",
    "event_plane",
    "hadron_jet",
    "observables",
    "run",
    "subjet_fragmentation",
]
