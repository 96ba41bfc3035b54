# pipeline/data_sources.py

import os
import yaml
import logging
from abc import ABC, abstractmethod
from typing import Iterator, Tuple, Optional, Dict, List, Union

from worldmodel.model.percepts import ImagePercept, PosePercept, percept_from_dict

logger = logging.getLogger(__name__)

Percept = Union[PosePercept, ImagePercept]


class PerceptSource(ABC):
    """
    Abstract base class for percept sources.

    All percept source implementations should inherit from this class and
    implement the required methods.
    """

    def __init__(self, config: Dict = None):
        """
        Initialize the percept source.

        Args:
            config: Configuration dictionary
        """
        self.config = config or {}
        self.is_initialized = False

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the percept source."""
        pass

    @abstractmethod
    def get_percept(self) -> Tuple[bool, Optional[Percept]]:
        """
        Get the next percept.

        Returns:
            Tuple of (success, percept)
        """
        pass

    def release(self) -> None:
        """Release resources."""
        pass

    def __iter__(self) -> Iterator[Percept]:
        """
        Create an iterator that yields percepts.

        Yields:
            Pose or image percepts
        """
        while True:
            success, percept = self.get_percept()
            if not success:
                break
            yield percept

    def __enter__(self):
        """Context manager entry."""
        if not self.is_initialized:
            self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.release()


class ListPerceptSource(PerceptSource):
    """
    Percept source for percepts held in memory (percept objects or dictionaries).
    """

    def __init__(self, percepts: List[Union[Percept, Dict]], config: Dict = None):
        super().__init__(config)
        self.items = list(percepts)
        self.percepts: List[Percept] = []
        self.current_idx = 0

    def initialize(self) -> None:
        """Convert dictionary entries into percepts; invalid entries are skipped."""
        self.percepts = []
        for i, item in enumerate(self.items):
            if isinstance(item, (PosePercept, ImagePercept)):
                self.percepts.append(item)
                continue
            try:
                self.percepts.append(percept_from_dict(item))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Skipping invalid percept #{i}: {e}")

        self.current_idx = 0
        self.is_initialized = True

    def get_percept(self) -> Tuple[bool, Optional[Percept]]:
        if not self.is_initialized:
            self.initialize()

        if self.current_idx >= len(self.percepts):
            return False, None

        percept = self.percepts[self.current_idx]
        self.current_idx += 1

        return True, percept

    def reset(self) -> None:
        """Reset to the first percept."""
        self.current_idx = 0

    def __len__(self) -> int:
        if not self.is_initialized:
            self.initialize()
        return len(self.percepts)


class PerceptFileSource(ListPerceptSource):
    """
    Percept source replaying percepts recorded in a YAML file.

    The file holds either a list of percept dictionaries or a mapping with a
    'percepts' list. Each entry may carry a 'type' key ('pose' or 'image').
    """

    def __init__(self, path: str, config: Dict = None):
        """
        Initialize the percept file source.

        Args:
            path: Path to a YAML percept file
            config: Configuration dictionary
        """
        super().__init__([], config)
        self.path = path

    def initialize(self) -> None:
        """Load the percept file."""
        if not os.path.exists(self.path):
            raise FileNotFoundError(f"Percept file not found: {self.path}")

        with open(self.path, "r") as f:
            data = yaml.safe_load(f) or []

        if isinstance(data, dict):
            data = data.get('percepts') or []

        self.items = list(data)
        super().initialize()
        logger.info(f"Loaded {len(self.percepts)} percepts from: {self.path}")
