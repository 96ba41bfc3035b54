# worldmodel/tracking/publisher.py

from abc import ABC, abstractmethod
from typing import Dict, List


class ModelPublisher(ABC):
    """
    Abstract output of the world model.

    Implementations forward model snapshots and single object updates to
    their consumers (message bus, GUI, log, ...).
    """

    @abstractmethod
    def publish_model(self, objects: List[Dict]) -> None:
        """
        Publish a full snapshot of the model.

        Args:
            objects: Public representations of all objects, in model order
        """
        pass

    @abstractmethod
    def publish_object(self, obj: Dict) -> None:
        """
        Publish the new state of a single object.

        Args:
            obj: Public representation of the updated object
        """
        pass
