#!/usr/bin/env python

""" Classify jets relative to the symmetry planes of the collision.

For the n-th harmonic, a symmetry plane at angle psi_n has n equivalent images at
``psi_n + 2 pi k / n``. A jet is in-plane if it is close to any of these images, and
out-of-plane if it is close to any image of the rotated plane ``psi_n + pi / n``. The
maximum distance is 2/3 of the usual ``pi / (2 n)``, which leaves a gap between the two
regions where a jet is neither in- nor out-of-plane.
"""

from dataclasses import dataclass
import logging
import numpy as np
from typing import Optional, Tuple, Union

from jet_observables.base import params

logger = logging.getLogger(__name__)

TWO_PI = 2 * np.pi
# Narrows the in-plane region relative to pi / (2n) for better contrast between the in- and out-of-plane yields.
IN_PLANE_FRACTION = 2.0 / 3.0

AngleLike = Union[float, np.ndarray]

def normalize_angle(phi: AngleLike) -> AngleLike:
    """ Map an angle into [0, 2pi).

    Args:
        phi: Angle(s) in radians.
    Returns:
        Angle(s) within [0, 2pi).
    """
    normalized = np.mod(phi, TWO_PI)
    # np.mod can return exactly 2pi for tiny negative values due to rounding.
    normalized = np.where(normalized >= TWO_PI, normalized - TWO_PI, normalized)
    if np.ndim(normalized) == 0:
        return float(normalized)
    return normalized

def angular_distance(phi_1: AngleLike, phi_2: AngleLike) -> AngleLike:
    """ Shortest distance between two angles on the circle.

    Args:
        phi_1: First angle(s).
        phi_2: Second angle(s).
    Returns:
        Distance within [0, pi].
    """
    diff = np.abs(np.asarray(normalize_angle(phi_1)) - np.asarray(normalize_angle(phi_2)))
    distance = np.where(diff > np.pi, TWO_PI - diff, diff)
    if np.ndim(distance) == 0:
        return float(distance)
    return distance

def max_in_plane_distance(harmonic: int) -> float:
    """ Maximum distance from a plane image for a jet to be considered in-plane. """
    return IN_PLANE_FRACTION * np.pi / (2 * harmonic)

def plane_images(psi: float, harmonic: int) -> np.ndarray:
    """ The equivalent images of a symmetry plane for a given harmonic. """
    return np.asarray(normalize_angle(psi + TWO_PI * np.arange(harmonic) / harmonic))

def is_in_plane(phi: float, psi: float, harmonic: int) -> bool:
    """ Determine whether an angle is in-plane relative to a symmetry plane.

    The minimum distance to every image of the plane is compared to the maximum in-plane distance.

    Args:
        phi: Angle of the jet.
        psi: Angle of the symmetry plane.
        harmonic: Harmonic order of the symmetry plane.
    Returns:
        True if the angle is in-plane.
    """
    distances = angular_distance(phi, plane_images(psi, harmonic))
    return bool(np.min(distances) < max_in_plane_distance(harmonic))

@dataclass(frozen = True)
class SymmetryPlaneSet:
    """ Symmetry plane of a given harmonic order.

    Args:
        harmonic: Harmonic order. Must be at least 2.
        angle: Symmetry plane angle. It is normalized to [0, 2pi) on construction.

    Attributes:
        harmonic: Harmonic order.
        angle: Symmetry plane angle in [0, 2pi).
    """
    harmonic: int
    angle: float = 0.0

    def __post_init__(self) -> None:
        if self.harmonic < 2:
            raise ValueError(f"Harmonic order must be at least 2, but received {self.harmonic}.")
        object.__setattr__(self, "angle", normalize_angle(float(self.angle)))

    @property
    def images(self) -> Tuple[float, ...]:
        """ Equivalent images of the symmetry plane. """
        return tuple(plane_images(self.angle, self.harmonic))

    @property
    def out_of_plane_angle(self) -> float:
        """ Reference angle for the out-of-plane classification. """
        return normalize_angle(self.angle + np.pi / self.harmonic)

    def is_in_plane(self, phi: float) -> bool:
        return is_in_plane(phi, self.angle, self.harmonic)

    def is_out_of_plane(self, phi: float) -> bool:
        return is_in_plane(phi, self.out_of_plane_angle, self.harmonic)

    def classify(self, phi: float, out_of_plane_reference: Optional["SymmetryPlaneSet"] = None) -> params.PlaneOrientation:
        """ Classify an angle relative to the symmetry plane.

        The in-plane condition is checked first, so an angle is never both in- and out-of-plane.

        Args:
            phi: Angle of the jet.
            out_of_plane_reference: Plane whose out-of-plane region should be used instead of our own.
                The rotation by pi / n always uses the harmonic of this object. Default: None, which
                uses this object.
        Returns:
            Orientation of the angle.
        """
        if self.is_in_plane(phi):
            return params.PlaneOrientation.in_plane

        if out_of_plane_reference is None:
            out_of_plane = self.is_out_of_plane(phi)
        else:
            out_of_plane = is_in_plane(
                phi,
                out_of_plane_reference.angle + np.pi / self.harmonic,
                out_of_plane_reference.harmonic,
            )
        if out_of_plane:
            return params.PlaneOrientation.out_of_plane
        return params.PlaneOrientation.neither
