#!/usr/bin/env python

""" Manages configuration of the jet observables analysis.

The configuration is stored in an explicit ``AnalysisConfig`` object, which is validated on
construction. It can be created from a YAML configuration file, or from the environment
variables which were historically used to pass the jet radius and symmetry planes
(``RJETS``, ``PSI2``, ``PSI3``, ``PSI4``).
"""

import argparse
import dataclasses
from dataclasses import dataclass, field
import logging
import numpy as np
import os
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pachyderm import yaml

from jet_observables.base import params

logger = logging.getLogger(__name__)

# Harmonics for which the symmetry planes are provided by default.
DEFAULT_HARMONICS = (2, 3, 4)

class ConfigurationError(ValueError):
    """ Raised for an invalid configuration. This is always fatal. """

def _default_symmetry_planes() -> Dict[int, float]:
    return {n: 0.0 for n in DEFAULT_HARMONICS}

def _to_float(name: str, value: Any) -> float:
    """ Convert a configuration value to a finite float.

    Raises:
        ConfigurationError: If the value isn't a finite number.
    """
    # bool is a subclass of int, but it certainly isn't a valid number here.
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, but received {value!r}.")
    try:
        converted = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, but received {value!r}.") from e
    if not np.isfinite(converted):
        raise ConfigurationError(f"{name} must be finite, but received {value!r}.")
    return converted

@dataclass
class AnalysisConfig:
    """ Configuration of an analysis run.

    Attributes:
        jet_radius: Jet resolution parameter.
        symmetry_planes: Symmetry plane angles (in [-pi, pi]) stored by harmonic order.
        legacy_second_harmonic_out_of_plane: If True, the out-of-plane regions of the third and fourth
            harmonics are determined relative to the second order plane rotated by pi / n, as was done
            in the published in- and out-of-plane measurement. Default: False.
        observables: Options for each enabled observable, stored by observable kind.
        output_prefix: Directory where the output should be stored.
        output_filename: Filename of the output histograms.
    """
    jet_radius: float = 0.4
    symmetry_planes: Dict[int, float] = field(default_factory = _default_symmetry_planes)
    legacy_second_harmonic_out_of_plane: bool = False
    observables: Dict[params.ObservableKind, Dict[str, Any]] = field(default_factory = dict)
    output_prefix: str = "output"
    output_filename: str = "observables.npz"

    def __post_init__(self) -> None:
        """ Validate and normalize the configuration. """
        self.jet_radius = _to_float("Jet radius", self.jet_radius)
        if self.jet_radius <= 0:
            raise ConfigurationError(f"Jet radius must be positive, but received {self.jet_radius}.")

        symmetry_planes = {}
        for harmonic, angle in self.symmetry_planes.items():
            try:
                harmonic = int(harmonic)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid harmonic {harmonic!r}.") from e
            if harmonic < 2:
                raise ConfigurationError(f"Harmonic order must be at least 2, but received {harmonic}.")
            angle = _to_float(f"Symmetry plane angle for n = {harmonic}", angle)
            if not -np.pi <= angle <= np.pi:
                raise ConfigurationError(
                    f"Symmetry plane angle for n = {harmonic} must be within [-pi, pi], but received {angle}."
                )
            symmetry_planes[harmonic] = angle
        self.symmetry_planes = symmetry_planes

        observables = {}
        for kind, options in self.observables.items():
            if not isinstance(kind, params.ObservableKind):
                try:
                    kind = params.ObservableKind[str(kind)]
                except KeyError as e:
                    raise ConfigurationError(
                        f"Unknown observable {kind}. Options: {[k.name for k in params.ObservableKind]}"
                    ) from e
            if options is None:
                options = {}
            if not isinstance(options, Mapping):
                raise ConfigurationError(f"Options for observable {kind} must be a mapping. Received: {options!r}")
            observables[kind] = dict(options)
        self.observables = observables

    @property
    def enabled_observables(self) -> List[params.ObservableKind]:
        return list(self.observables)

    def replace(self, **kwargs: Any) -> "AnalysisConfig":
        """ Create a new configuration with some values replaced. The result is validated again. """
        return dataclasses.replace(self, **kwargs)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "AnalysisConfig":
        """ Create the configuration from a dict-like configuration.

        Args:
            config: Dict-like configuration (for example, loaded from YAML).
        Returns:
            The validated configuration.
        Raises:
            ConfigurationError: If the configuration contains unknown keys or invalid values.
        """
        known_fields = {f.name for f in dataclasses.fields(cls)}
        unknown = set(config) - known_fields
        if unknown:
            raise ConfigurationError(f"Unknown configuration options: {sorted(unknown)}")
        return cls(**dict(config))

    @classmethod
    def from_yaml_file(cls, filename: str) -> "AnalysisConfig":
        """ Load the configuration from a YAML file.

        Args:
            filename: Path to the YAML configuration.
        Returns:
            The validated configuration.
        """
        y = yaml.yaml(modules_to_register = [params])
        with open(filename, "r") as f:
            config = y.load(f)
        if config is None:
            config = {}
        logger.debug(f"Loaded configuration from {filename}")
        return cls.from_mapping(config)

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None, **kwargs: Any) -> "AnalysisConfig":
        """ Create the configuration from the historical environment variables.

        ``RJETS`` sets the jet radius, while ``PSI2``, ``PSI3`` and ``PSI4`` set the symmetry plane
        angles. Any variable which isn't set keeps its default (or the value passed via kwargs).

        Args:
            environ: Environment to read. Default: None, which uses ``os.environ``.
            kwargs: Additional configuration values.
        Returns:
            The validated configuration.
        """
        if environ is None:
            environ = os.environ

        values: Dict[str, Any] = dict(kwargs)
        if "RJETS" in environ:
            values["jet_radius"] = _to_float("RJETS", environ["RJETS"])
        symmetry_planes = dict(values.get("symmetry_planes", _default_symmetry_planes()))
        for harmonic in DEFAULT_HARMONICS:
            name = f"PSI{harmonic}"
            if name in environ:
                symmetry_planes[harmonic] = _to_float(name, environ[name])
        values["symmetry_planes"] = symmetry_planes

        return cls(**values)

def override_from_environment(config: AnalysisConfig, environ: Optional[Mapping[str, str]] = None) -> AnalysisConfig:
    """ Override an existing configuration with the values set in the environment. """
    return AnalysisConfig.from_environment(environ = environ, **{
        f.name: getattr(config, f.name) for f in dataclasses.fields(config)
    })

def determine_options_from_args(args: Optional[List[str]] = None,
                                description: str = "Jet observables {task_name}.",
                                **kwargs: str) -> Tuple[AnalysisConfig, argparse.Namespace]:
    """ Determine the analysis configuration from the command line arguments.

    Args:
        args: Arguments to parse. Default: None (which will then use sys.argv)
        description: Help description for arguments
        kwargs: Additional arguments to format the help description. Often contains ``task_name``.
    Returns:
        (analysis configuration, parsed arguments). The parsed arguments contain the input filename
            and number of events.
    """
    # Make sure there is always a task name
    if "task_name" not in kwargs:
        kwargs["task_name"] = "analysis"

    parser = argparse.ArgumentParser(description = description.format(**kwargs))
    parser.add_argument("-c", "--configFilename", metavar = "configFilename",
                        type = str, default = "config/observables.yaml",
                        help = "Path to config filename")
    parser.add_argument("-i", "--inputFilename", metavar = "inputFilename",
                        type = str, required = True,
                        help = "Path to the input events")
    parser.add_argument("-o", "--outputPrefix", metavar = "outputPrefix",
                        type = str, default = "",
                        help = "Output directory. Overrides the config.")
    parser.add_argument("-n", "--nEvents", metavar = "nEvents",
                        type = int, default = None,
                        help = "Maximum number of events to process. Default: all.")
    parser.add_argument("-r", "--jetRadius", metavar = "jetRadius",
                        type = float, default = None,
                        help = "Jet resolution parameter. Overrides the config.")
    parser.add_argument("--fromEnvironment", action = "store_true",
                        help = "Take the jet radius and symmetry planes from RJETS and PSI{2,3,4}.")

    parsed_args = parser.parse_args(args)

    config = AnalysisConfig.from_yaml_file(parsed_args.configFilename)
    if parsed_args.fromEnvironment:
        config = override_from_environment(config)
    if parsed_args.jetRadius is not None:
        config = config.replace(jet_radius = parsed_args.jetRadius)
    if parsed_args.outputPrefix:
        config = config.replace(output_prefix = parsed_args.outputPrefix)

    return config, parsed_args
