#!/usr/bin/env python

""" Run the jet observables analysis over stored events.

Events are read from a numpy archive, routed through the enabled observables, and the resulting
histograms are stored in the configured output directory.
"""

import logging
from typing import List, Optional

from jet_observables.analysis import observables
from jet_observables.analysis import subjet_fragmentation
from jet_observables.base import analysis_config
from jet_observables.base import analysis_manager
from jet_observables.base import analysis_objects
from jet_observables.event_gen import generator
from jet_observables.event_gen import reader

logger = logging.getLogger(__name__)

class JetObservablesManager(analysis_manager.Manager):
    """ Manage the extraction of the jet observables.

    Args:
        config: Analysis configuration.
        input_filename: Path to the input events.
        n_events: Maximum number of events to process. Default: None, which processes all events.
        event_source: Source of the events. Default: None, which reads the events from ``input_filename``.
        jet_finder: Jet finder passed to the pipeline. Default: None, which uses the pipeline default.
        recluster: Reclusterer passed to the pipeline. Default: None, which uses the pipeline default.

    Attributes:
        event_source: Source of the events.
        pipeline: Observable pipeline.
        hists: Finalized histograms. Only available after running.
        output_filename: Filename under which the histograms were stored. Only available after running.
    """
    def __init__(self, config: analysis_config.AnalysisConfig, input_filename: str,
                 n_events: Optional[int] = None,
                 event_source: Optional[generator.EventSource] = None,
                 jet_finder: Optional[observables.JetFinder] = None,
                 recluster: Optional[subjet_fragmentation.Reclusterer] = None):
        super().__init__(config = config, input_filename = input_filename, n_events = n_events)
        if event_source is None:
            event_source = reader.NumpyEventReader(filename = self.input_filename)
        self.event_source = event_source
        self.pipeline = observables.ObservablePipeline(
            config = self.config, jet_finder = jet_finder, recluster = recluster,
        )
        self.hists: Optional[analysis_objects.HistogramCollection] = None
        self.output_filename = ""

    def _total_events(self) -> Optional[int]:
        """ Determine the number of events for the progress bar, if it is known. """
        n_available = getattr(self.event_source, "n_events", None)
        if n_available is None:
            return self.n_events
        if self.n_events is None:
            return n_available
        return min(n_available, self.n_events)

    def event_loop(self) -> int:
        """ Process the events from the event source.

        Returns:
            Number of processed events.
        """
        with self._progress_manager.counter(total = self._total_events(),
                                            desc = "Processing:",
                                            unit = "events") as processing:
            for event in self.event_source(n_events = self.n_events):
                self.pipeline.process_event(event)
                processing.update()

        return self.pipeline.n_events

    def run(self) -> bool:
        """ Setup the event source, process the events, and store the histograms. """
        if not self.event_source.initialized:
            self.event_source.setup()

        n_processed = self.event_loop()
        logger.info(f"Processed {n_processed} events.")

        self.hists = self.pipeline.finalize()
        self.output_filename = self.hists.save(self.output_info)

        return True

def run_from_terminal(args: Optional[List[str]] = None) -> JetObservablesManager:
    """ Driver function for running the jet observables analysis from the terminal. """
    return analysis_manager.run_helper(
        manager_class = JetObservablesManager,
        args = args,
        task_name = "jet observables",
        description = "Extract {task_name} from stored events.",
    )

if __name__ == "__main__":
    run_from_terminal()
