# worldmodel/fusion/object_fusion.py

import numpy as np
import logging
from typing import Dict, Optional

from filterpy.kalman import update as kalman_update

from worldmodel.model.tracked_object import Header, TrackedObject

logger = logging.getLogger(__name__)


def squared_mahalanobis(position_a: np.ndarray,
                        covariance_a: np.ndarray,
                        position_b: np.ndarray,
                        covariance_b: np.ndarray) -> float:
    """
    Squared Mahalanobis distance between two Gaussian position estimates.

    d^2 = (a - b)^T (C_a + C_b)^-1 (a - b)

    Args:
        position_a: Mean of the first estimate
        covariance_a: Covariance of the first estimate
        position_b: Mean of the second estimate
        covariance_b: Covariance of the second estimate

    Returns:
        Squared distance

    Raises:
        numpy.linalg.LinAlgError: If the combined covariance is singular
    """
    diff = np.asarray(position_a, dtype=float) - np.asarray(position_b, dtype=float)
    combined = np.asarray(covariance_a, dtype=float) + np.asarray(covariance_b, dtype=float)
    return float(diff @ np.linalg.solve(combined, diff))


class ObjectFusion:
    """
    Fuses percept observations into tracked object estimates.

    Two Gaussian position estimates are combined in information form, which
    is what a Kalman measurement update with an identity measurement model
    computes:

        C = (C_a^-1 + C_b^-1)^-1
        x = C (C_a^-1 x_a + C_b^-1 x_b)

    The fused covariance is never larger than the tighter of the two inputs.
    Orientation is not smoothed; the latest observation wins.
    """

    def __init__(self, config: Dict = None):
        """
        Initialize object fusion.

        Args:
            config: Configuration dictionary with keys:
                - min_variance: Lower bound applied to the diagonal of fused
                  covariances to keep them invertible (default: 1e-9)
        """
        self.config = {
            'min_variance': 1e-9,
            **(config or {})
        }
        self.measurement_model = np.eye(3)

    def initialize_object(self,
                          obj: TrackedObject,
                          position: np.ndarray,
                          covariance: np.ndarray,
                          orientation: Optional[np.ndarray],
                          support: float,
                          header: Optional[Header] = None) -> TrackedObject:
        """Set the estimate of a newly created object from its first observation."""
        obj.set_position(position)
        obj.covariance = covariance
        obj.set_orientation(orientation)
        obj.support = float(support)
        if header is not None:
            obj.header = header.copy()
        return obj

    def fuse(self,
             obj: TrackedObject,
             position: np.ndarray,
             covariance: np.ndarray,
             support: float) -> TrackedObject:
        """
        Fuse an observation into an existing object and add its support.

        Args:
            obj: Object to update in place
            position: Observed position (canonical frame)
            covariance: Observation covariance (canonical frame)
            support: Support of the observation

        Returns:
            The updated object
        """
        position = np.asarray(position, dtype=float).reshape(3)
        covariance = np.asarray(covariance, dtype=float)

        combined = obj.covariance + covariance
        if np.linalg.matrix_rank(combined) < 3:
            logger.warning(f"Cannot fuse observation into {obj.object_id}: singular covariance, "
                           f"replacing estimate")
            obj.set_position(position)
            obj.covariance = covariance
        else:
            fused_position, fused_covariance = kalman_update(
                obj.position, obj.covariance, position, covariance, H=self.measurement_model)
            fused_covariance = 0.5 * (fused_covariance + fused_covariance.T)
            diagonal = np.diag_indices(3)
            fused_covariance[diagonal] = np.maximum(fused_covariance[diagonal], self.config['min_variance'])
            obj.set_position(fused_position)
            obj.covariance = fused_covariance

        obj.add_support(support)
        return obj

    def apply_support(self, obj: TrackedObject, support: float) -> TrackedObject:
        """Adjust the support of an object without touching its estimate."""
        obj.add_support(support)
        return obj

    def update_orientation(self,
                           obj: TrackedObject,
                           orientation: Optional[np.ndarray],
                           header: Header) -> TrackedObject:
        """Overwrite orientation and header with the latest observation."""
        if orientation is not None:
            obj.set_orientation(orientation)
        obj.header = header.copy()
        return obj
