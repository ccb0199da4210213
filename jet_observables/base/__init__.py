#!/usr/bin/env python

""" Base package for the jet observables analysis. """

__all__ = [
    "analysis_config",
    "analysis_manager",
    "analysis_objects",
    "params",
    "particle_id",
]
