#!/usr/bin/env python

""" Event input and jet finding for the jet observables analysis. """

__all__ = [
    "clustering",
    "generator",
    "reader",
]
