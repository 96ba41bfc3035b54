# worldmodel/model/object_model.py

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from worldmodel.model.tracked_object import TrackedObject

logger = logging.getLogger(__name__)


class ObjectModel:
    """
    Ordered, thread-safe store of tracked objects.

    Single operations lock internally. A sequence of operations that must be
    atomic (association, fusion, verification) runs inside ``with
    model.lock():``. The lock is re-entrant, so store operations may be
    called while it is held.
    """

    def __init__(self):
        self._objects: Dict[str, TrackedObject] = {}
        self._lock = threading.RLock()
        # per class id; never reset so ids are not reused within the model lifetime
        self._id_counters: Dict[str, int] = {}

    @contextmanager
    def lock(self) -> Iterator['ObjectModel']:
        """Hold exclusive access to the model for the duration of the block."""
        self._lock.acquire()
        try:
            yield self
        finally:
            self._lock.release()

    def _generate_id(self, class_id: str) -> str:
        prefix = class_id or 'object'
        while True:
            count = self._id_counters.get(prefix, 0)
            self._id_counters[prefix] = count + 1
            object_id = f"{prefix}_{count}"
            if object_id not in self._objects:
                return object_id

    def add(self, class_id: str = '', object_id: str = '') -> TrackedObject:
        """
        Create and store a new object.

        Args:
            class_id: Class label of the new object (may be empty)
            object_id: Explicit identifier, or empty to assign one

        Returns:
            The new TrackedObject
        """
        with self._lock:
            if not object_id:
                object_id = self._generate_id(class_id)
            elif object_id in self._objects:
                raise ValueError(f"Object {object_id} already exists")

            obj = TrackedObject(class_id, object_id)
            self._objects[object_id] = obj
            logger.debug(f"Added object {object_id} of class '{class_id}'")
            return obj

    def insert(self, obj: TrackedObject) -> TrackedObject:
        """
        Store an object that was created outside of the model.

        An object without an identifier is replaced by a copy with a newly
        assigned one.
        """
        with self._lock:
            if not obj.object_id:
                stored = TrackedObject(obj.class_id, self._generate_id(obj.class_id))
                stored.position = obj.position.copy()
                stored.orientation = obj.orientation.copy()
                stored.covariance = obj.covariance
                stored.support = obj.support
                stored.state = obj.state
                stored.header = obj.header.copy()
                obj = stored
            elif obj.object_id in self._objects:
                raise ValueError(f"Object {obj.object_id} already exists")

            self._objects[obj.object_id] = obj
            return obj

    def get(self, object_id: str) -> Optional[TrackedObject]:
        with self._lock:
            return self._objects.get(object_id)

    def objects(self) -> List[TrackedObject]:
        """Ordered list of the stored objects (in insertion order)."""
        with self._lock:
            return list(self._objects.values())

    def remove(self, object_id: str) -> Optional[TrackedObject]:
        """Remove a single object; returns it, or None if it was not stored."""
        with self._lock:
            return self._objects.pop(object_id, None)

    def reset(self) -> None:
        """Remove all objects."""
        with self._lock:
            count = len(self._objects)
            self._objects.clear()
        logger.info(f"Object model reset ({count} objects removed)")

    def to_message(self) -> List[Dict]:
        """Snapshot of all objects' public representations, in insertion order."""
        with self._lock:
            return [obj.to_message() for obj in self._objects.values()]

    def __iter__(self) -> Iterator[TrackedObject]:
        return iter(self.objects())

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)

    def __contains__(self, object_id: str) -> bool:
        with self._lock:
            return object_id in self._objects

    def __repr__(self):
        return f"ObjectModel(objects={len(self)})"
