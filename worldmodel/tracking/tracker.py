# worldmodel/tracking/tracker.py

from abc import ABC, abstractmethod
from typing import List, Dict, Optional, Union

from worldmodel.model.percepts import ImagePercept, PosePercept

class Tracker(ABC):
    """
    Abstract base class for object trackers.
    
    All tracker implementations should inherit from this class and
    implement the process_percept method.
    """
    
    def __init__(self, config: Dict = None):
        """
        Initialize the tracker with configuration.
        
        Args:
            config: Configuration dictionary
        """
        self.config = config or {}
        self.is_initialized = False
    
    @abstractmethod
    def initialize(self) -> None:
        """Initialize the tracker."""
        pass
    
    @abstractmethod
    def process_percept(self, percept: Union[PosePercept, ImagePercept]) -> Optional[Dict]:
        """
        Integrate a single percept into the tracked objects.
        
        Args:
            percept: Pose or image percept
            
        Returns:
            Public representation of the created or updated object, or None
            if the percept was dropped
        """
        pass
    
    @abstractmethod
    def get_object_model(self) -> List[Dict]:
        """Snapshot of all tracked objects."""
        pass
    
    @abstractmethod
    def reset(self) -> None:
        """Reset tracker state."""
        pass
