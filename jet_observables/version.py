#!/usr/bin/env python

""" Package version. """

__version__ = "0.3.0"
