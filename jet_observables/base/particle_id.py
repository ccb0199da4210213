#!/usr/bin/env python

""" Particle identification helpers based on the PDG Monte Carlo numbering scheme.

All functions operate on arrays of PDG codes (which may be stored as floats, as they are
in the structured particle arrays) and return boolean masks.
"""

import numpy as np

# K0L and K0S don't follow the standard digit pattern of a meson.
_SPECIAL_MESONS = np.array([130, 310])
# Reserved codes which match the meson digit pattern but are not particles.
_RESERVED_CODES = np.array([110, 990, 9990])

def _digits(pid: np.ndarray) -> np.ndarray:
    """ Absolute integer PDG codes. """
    return np.abs(np.asarray(pid, dtype = np.int64))

def _is_nucleus(abs_pid: np.ndarray) -> np.ndarray:
    """ Nuclear codes are of the form 10LZZZAAAI. """
    return abs_pid >= 1000000000

def is_meson(pid: np.ndarray) -> np.ndarray:
    """ Determine whether the codes correspond to mesons.

    Args:
        pid: PDG codes.
    Returns:
        Boolean mask which is True for mesons.
    """
    abs_pid = _digits(pid)
    # Ignore the excitation (nr, nl) digits
    fundamental = abs_pid % 10000
    nj = fundamental % 10
    nq3 = (fundamental // 10) % 10
    nq2 = (fundamental // 100) % 10
    nq1 = (fundamental // 1000) % 10

    standard = (nq1 == 0) & (nq2 > 0) & (nq3 > 0) & (nj > 0) & (nq2 >= nq3)
    # Quarkonia such as 110 or 990 are reserved. Everything else in the pattern is a meson.
    standard &= ~np.isin(abs_pid, _RESERVED_CODES)
    special = np.isin(abs_pid, _SPECIAL_MESONS)
    return (standard | special) & ~_is_nucleus(abs_pid)

def is_baryon(pid: np.ndarray) -> np.ndarray:
    """ Determine whether the codes correspond to baryons.

    Args:
        pid: PDG codes.
    Returns:
        Boolean mask which is True for baryons.
    """
    abs_pid = _digits(pid)
    fundamental = abs_pid % 10000
    nj = fundamental % 10
    nq3 = (fundamental // 10) % 10
    nq2 = (fundamental // 100) % 10
    nq1 = (fundamental // 1000) % 10

    # Diquarks have nq3 == 0, so they are excluded here.
    return (nq1 > 0) & (nq2 > 0) & (nq3 > 0) & (nj > 0) & ~_is_nucleus(abs_pid)

def is_hadron(pid: np.ndarray) -> np.ndarray:
    """ Determine whether the codes correspond to hadrons (mesons or baryons). """
    return is_meson(pid) | is_baryon(pid)

def is_charged(charge: np.ndarray) -> np.ndarray:
    """ Determine whether particles carry electric charge. """
    return np.asarray(charge) != 0

def charged_hadron_mask(particles: np.ndarray) -> np.ndarray:
    """ Select charged hadrons from a structured particle array.

    Args:
        particles: Structured particle array containing the "pid" and "charge" fields.
    Returns:
        Boolean mask which is True for charged hadrons.
    """
    return is_hadron(particles["pid"]) & is_charged(particles["charge"])
