#!/usr/bin/env python

""" Jet and hadron observables for heavy-ion Monte-Carlo events. """

from jet_observables.version import __version__  # noqa: F401
