# pipeline/publishers.py

import logging
import threading
from typing import Dict, List, Optional

from worldmodel.tracking.publisher import ModelPublisher

logger = logging.getLogger(__name__)


class RecordingPublisher(ModelPublisher):
    """Keeps the published notifications in memory."""

    def __init__(self):
        self._lock = threading.Lock()
        self.models: List[List[Dict]] = []
        self.updates: List[Dict] = []

    def publish_model(self, objects: List[Dict]) -> None:
        with self._lock:
            self.models.append(objects)

    def publish_object(self, obj: Dict) -> None:
        with self._lock:
            self.updates.append(obj)

    @property
    def last_model(self) -> Optional[List[Dict]]:
        with self._lock:
            return self.models[-1] if self.models else None


class LoggingPublisher(ModelPublisher):
    """Logs a one-line summary of every notification."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def publish_model(self, objects: List[Dict]) -> None:
        logger.log(self.level, f"Model with {len(objects)} objects: "
                               f"{[obj['info']['object_id'] for obj in objects]}")

    def publish_object(self, obj: Dict) -> None:
        x, y, z = obj['pose']['position']
        logger.log(self.level, f"Object {obj['info']['object_id']} ({obj['info']['class_id']}) at "
                               f"({x:.2f}, {y:.2f}, {z:.2f}), support {obj['info']['support']:.1f}, "
                               f"state {obj['state']}")
