# worldmodel/utils/services.py

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)


class ServiceCallError(Exception):
    """Raised when an external service is absent, fails or does not answer in time."""


class ServiceProxy:
    """
    Request/response call to an external collaborator with a bounded wait.

    Each proxy runs its calls on its own worker threads. Calls that time out
    keep running there in the background, so a hanging service can only
    exhaust its own workers and never delays calls to other services.

    Example:
        proxy = ServiceProxy('get_distance_to_obstacle', service.get_distance, timeout=1.0)
        distance = proxy.call(point, header)
    """

    def __init__(self,
                 name: str,
                 handler: Optional[Callable[..., Any]],
                 timeout: float = 1.0,
                 max_workers: int = 4):
        self.name = name
        self.handler = handler
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=f"service-{name}")

    def exists(self) -> bool:
        return self.handler is not None

    def call(self, *args, **kwargs) -> Any:
        """
        Call the service and wait for the response.

        Returns:
            The service response

        Raises:
            ServiceCallError: If the service is absent, raised an exception or timed out
        """
        if self.handler is None:
            raise ServiceCallError(f"Service {self.name} is not available")

        future = self._executor.submit(self.handler, *args, **kwargs)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError:
            future.cancel()
            raise ServiceCallError(f"Service {self.name} did not respond within {self.timeout:.2f}s")
        except Exception as e:
            raise ServiceCallError(f"Service {self.name} failed: {e}") from e

    def __repr__(self):
        return f"ServiceProxy(name={self.name!r}, available={self.exists()}, timeout={self.timeout})"


class ObstacleDistanceService(ABC):
    """
    Abstract ranging service that measures the distance to the next obstacle
    along the bearing of a point.
    """

    @abstractmethod
    def get_distance(self, point: np.ndarray, header) -> Optional[float]:
        """
        Measure the distance to the next obstacle.

        Args:
            point: Point [x, y, z] in the frame given by the header
            header: Header with frame_id and stamp of the point

        Returns:
            Distance in meters, or None / a non-positive value if unknown
        """
        pass
