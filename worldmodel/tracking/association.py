# worldmodel/tracking/association.py

import logging
import numpy as np
from typing import Iterable, List, Optional, Tuple

from worldmodel.fusion.object_fusion import squared_mahalanobis
from worldmodel.model.tracked_object import TrackedObject

logger = logging.getLogger(__name__)

# squared Mahalanobis distance below which a percept belongs to an object
ASSOCIATION_THRESHOLD = 1.0


def candidate_objects(objects: Iterable[TrackedObject], class_id: str) -> List[TrackedObject]:
    """
    Objects a percept of the given class may be associated with.

    Objects of another class and discarded objects are skipped; an empty
    class id matches every class.
    """
    return [
        obj for obj in objects
        if obj.state.is_matchable and (not class_id or obj.class_id == class_id)
    ]


def associate(objects: Iterable[TrackedObject],
              class_id: str,
              position: np.ndarray,
              covariance: np.ndarray) -> Tuple[Optional[TrackedObject], float]:
    """
    Find the tracked object closest to an observation.

    Args:
        objects: Tracked objects to search
        class_id: Class of the observation (empty matches all classes)
        position: Observed position in the canonical frame
        covariance: Observation covariance in the canonical frame

    Returns:
        Tuple of (best object or None, its squared Mahalanobis distance).
        An object is only returned if its distance is below ASSOCIATION_THRESHOLD.
    """
    best_object = None
    min_distance = ASSOCIATION_THRESHOLD

    for obj in candidate_objects(objects, class_id):
        try:
            distance = squared_mahalanobis(obj.position, obj.covariance, position, covariance)
        except np.linalg.LinAlgError:
            logger.debug(f"Skipping object {obj.object_id}: singular combined covariance")
            continue

        if distance < min_distance:
            best_object = obj
            min_distance = distance

    if best_object is None:
        return None, float('inf')
    return best_object, min_distance
