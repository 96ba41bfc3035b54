# pipeline/percept_pipeline.py

import time
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Union

from worldmodel.model.percepts import ImagePercept, PosePercept
from worldmodel.tracking.tracker import Tracker

logger = logging.getLogger(__name__)


class PerceptResult:
    """Container for the outcome of a single percept."""

    def __init__(self):
        self.percept_id: int = 0
        self.timestamp: float = 0.0
        self.object: Optional[Dict] = None  # updated object, None if dropped
        self.processing_time: float = 0.0  # Processing time in seconds

    @property
    def accepted(self) -> bool:
        return self.object is not None

    def __repr__(self):
        object_id = self.object['info']['object_id'] if self.object else None
        return (f"PerceptResult(percept_id={self.percept_id}, "
                f"object={object_id}, "
                f"processing_time={self.processing_time:.3f}s)")


class PerceptPipeline:
    """
    Feeds percepts into a tracker, one handler task per percept.

    Percepts from a source are dispatched onto a thread pool so that several
    percepts are handled concurrently against the shared model, like
    callbacks of a message bus would be.
    """

    def __init__(self, tracker: Tracker, config: Dict = None):
        """
        Initialize the percept pipeline.

        Args:
            tracker: Tracker receiving the percepts
            config: Configuration parameters:
                - workers: Number of concurrent percept handlers (default: 4)
        """
        self.tracker = tracker
        self.config = {
            'workers': 4,
            **(config or {})
        }

        # Internal state
        self.percept_id = 0
        self.is_initialized = False
        self._lock = threading.Lock()

        # Performance metrics
        self.timing = {
            'accepted': [],
            'dropped': [],
            'total': []
        }

    def initialize(self):
        """Initialize the tracker."""
        logger.info("Initializing percept pipeline...")
        self.tracker.initialize()
        self.is_initialized = True
        logger.info("Percept pipeline initialized successfully")

    def process_percept(self, percept: Union[PosePercept, ImagePercept]) -> PerceptResult:
        """
        Process a single percept.

        Args:
            percept: Pose or image percept

        Returns:
            PerceptResult with the updated object and timing
        """
        if not self.is_initialized:
            self.initialize()

        with self._lock:
            result = PerceptResult()
            result.percept_id = self.percept_id
            self.percept_id += 1
        result.timestamp = percept.header.stamp or time.time()

        start_time = time.time()
        try:
            result.object = self.tracker.process_percept(percept)
        except Exception as e:
            logger.error(f"Error processing percept {result.percept_id}: {e}")
        result.processing_time = time.time() - start_time

        with self._lock:
            self.timing['accepted' if result.accepted else 'dropped'].append(result.processing_time)
            self.timing['total'].append(result.processing_time)

        return result

    def run(self, percepts: Iterable[Union[PosePercept, ImagePercept]], workers: Optional[int] = None) -> List[PerceptResult]:
        """
        Process all percepts of a source concurrently.

        Args:
            percepts: Percept source or any iterable of percepts
            workers: Number of concurrent handlers (default: config 'workers')

        Returns:
            Results in the order the percepts were read
        """
        if not self.is_initialized:
            self.initialize()

        workers = workers or self.config['workers']
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='percept') as executor:
            futures = [executor.submit(self.process_percept, percept) for percept in percepts]
            results = [future.result() for future in futures]

        accepted = sum(1 for result in results if result.accepted)
        logger.info(f"Processed {len(results)} percepts ({accepted} accepted) with {workers} workers")
        return results

    def report_performance(self) -> Dict[str, float]:
        """
        Report performance metrics for the pipeline.

        Returns:
            Dict with average and maximum processing times and counts
        """
        performance = {}
        with self._lock:
            for key, times in self.timing.items():
                performance[f"{key}_count"] = len(times)
                if times:
                    performance[f"avg_{key}_time"] = sum(times) / len(times)
                    performance[f"max_{key}_time"] = max(times)

            if self.timing['total'] and sum(self.timing['total']) > 0:
                performance["percepts_per_second"] = 1.0 / (sum(self.timing['total']) / len(self.timing['total']))

        return performance

    def reset(self):
        """Reset the pipeline state."""
        self.percept_id = 0
        self.tracker.reset()

        # Clear timing statistics
        for key in self.timing:
            self.timing[key] = []
