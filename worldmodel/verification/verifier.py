# worldmodel/verification/verifier.py

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Callable, Dict


class VerificationResponse(IntEnum):
    UNKNOWN = 0
    DISCARD = 1
    CONFIRM = 2


class ObjectVerifier(ABC):
    """
    Abstract base class for external object verification services.

    A verifier receives the public representation of an object after it was
    created or updated and votes to confirm or discard it.
    """

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def verify(self, object_message: Dict) -> VerificationResponse:
        """
        Verify an object.

        Args:
            object_message: Public representation of the object (see TrackedObject.to_message)

        Returns:
            VerificationResponse vote
        """
        pass

    def __repr__(self):
        return f"{self.__class__.__name__}(name={self.name!r})"


class CallbackVerifier(ObjectVerifier):
    """Verifier backed by a plain function."""

    def __init__(self, name: str, callback: Callable[[Dict], VerificationResponse]):
        super().__init__(name)
        self.callback = callback

    def verify(self, object_message: Dict) -> VerificationResponse:
        return self.callback(object_message)
