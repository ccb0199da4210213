#!/usr/bin/env python

""" Base functionality for analysis managers. """

import abc
import coloredlogs
import enlighten
import logging
from typing import Any, List, Optional, Type, TypeVar

from pachyderm import generic_class

from jet_observables.base import analysis_config
from jet_observables.base import analysis_objects

logger = logging.getLogger(__name__)

class Manager(generic_class.EqualityMixin, abc.ABC):
    """ Analysis manager for creating and directing analysis tasks.

    Args:
        config: Analysis configuration.
        input_filename: Path to the input events.
        n_events: Maximum number of events to process. Default: None, which processes all events.

    Attributes:
        config: Analysis configuration.
        input_filename: Path to the input events.
        n_events: Maximum number of events to process.
        output_info: Output information for storing the histograms.
        _progress_manager: Keep track of the analysis progress using status bars.
    """
    def __init__(self, config: analysis_config.AnalysisConfig, input_filename: str,
                 n_events: Optional[int] = None, **kwargs: Any):
        self.config = config
        self.input_filename = input_filename
        self.n_events = n_events
        self.output_info = analysis_objects.OutputWrapper(
            output_prefix = self.config.output_prefix,
            output_filename = self.config.output_filename,
        )

        # Monitor the progress of the analysis.
        self._progress_manager = enlighten.get_manager()

    @abc.abstractmethod
    def run(self) -> bool:
        """ Run the analyses contained in the manager.

        Returns:
            True if the analyses were run successfully.
        """
        ...

    def _run(self) -> bool:
        """ Wrapper around the actual call to run to restore a normal output.

        Returns:
            True if the analyses were run successfully
        """
        try:
            result = self.run()
        finally:
            # Disable enlighten so that it won't mess with the terminal afterwards.
            self._progress_manager.stop()

        return result

_T = TypeVar("_T", bound = Manager)

def setup_logging(level: int = logging.DEBUG) -> None:
    """ Enable logging with colors in the output. """
    coloredlogs.install(
        level = level,
        fmt = "%(asctime)s %(name)s:%(lineno)d %(levelname)s %(message)s"
    )
    # Quiet down some pachyderm modules
    logging.getLogger("pachyderm.yaml").setLevel(logging.INFO)
    logging.getLogger("pachyderm.histogram").setLevel(logging.INFO)

def run_helper(manager_class: Type[_T], args: Optional[List[str]] = None, **kwargs: str) -> _T:
    """ Helper function to execute most analysis managers.

    It sets up the passed analysis manager object and then calls ``run()``. It also enables logging
    with colors in the output.

    Args:
        manager_class: Class which will manage execution of the task.
        args: Arguments to parse. Default: None (which will then use sys.argv)
        task_name: Name of the tasks that will be analyzed for the argument parsing help.
        description: Description of the task for the argument parsing help.
    Returns:
        The created and executed task manager.
    """
    # Basic setup
    setup_logging()

    # Setup the analysis
    config, terminal_args = analysis_config.determine_options_from_args(args = args, **kwargs)
    analysis_manager = manager_class(
        config = config,
        input_filename = terminal_args.inputFilename,
        n_events = terminal_args.nEvents,
    )
    # Finally run the analysis.
    analysis_manager._run()

    # Provide the final result back to the caller.
    return analysis_manager
