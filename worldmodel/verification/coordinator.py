# worldmodel/verification/coordinator.py

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from worldmodel.model.state import ObjectState
from worldmodel.model.tracked_object import TrackedObject
from worldmodel.utils.config import parse_service_list
from worldmodel.utils.services import ServiceCallError, ServiceProxy
from worldmodel.verification.verifier import ObjectVerifier, VerificationResponse

logger = logging.getLogger(__name__)

Verifiers = Union[Sequence[ObjectVerifier], Mapping[str, ObjectVerifier], None]


class VerificationCoordinator:
    """
    Asks external verification services about an object and applies their votes.

    Every configured service is consulted in order, also after a DISCARD
    vote. DISCARD sets the object state to DISCARDED, CONFIRM adds the
    confirmation support, and UNKNOWN, failed or timed out calls have no
    effect. Votes already applied are kept when a later call fails.
    """

    def __init__(self, verifiers: Verifiers = None, config: Dict = None):
        """
        Initialize the coordinator.

        Args:
            verifiers: Verifiers in calling order, or a mapping from service
                name to verifier that is ordered by 'verification_services'
            config: Configuration dictionary with keys:
                - verification_services: Names of the services to call, in order
                  (list or comma separated string)
                - confirmation_support: Support added per CONFIRM vote (default: 100.0)
                - service_timeout: Maximum wait per call in seconds (default: 1.0)
        """
        self.config = {
            'verification_services': [],
            'confirmation_support': 100.0,
            'service_timeout': 1.0,
            **(config or {})
        }
        self.services: List[ServiceProxy] = []

        names = parse_service_list(self.config['verification_services'])
        if isinstance(verifiers, Mapping):
            for name in names or list(verifiers.keys()):
                verifier = verifiers.get(name)
                self.services.append(self._make_proxy(name, verifier))
                if verifier is not None:
                    logger.info(f"Using verification service {name}")
                else:
                    logger.warning(f"Verification service {name} is not (yet) there...")
        else:
            for verifier in verifiers or []:
                self.services.append(self._make_proxy(verifier.name, verifier))
                logger.info(f"Using verification service {verifier.name}")

    def _make_proxy(self, name: str, verifier: Optional[ObjectVerifier]) -> ServiceProxy:
        handler = verifier.verify if verifier is not None else None
        return ServiceProxy(name, handler, timeout=self.config['service_timeout'])

    @staticmethod
    def _to_response(value) -> Optional[VerificationResponse]:
        if isinstance(value, VerificationResponse):
            return value
        if isinstance(value, str) and value.strip().upper() in VerificationResponse.__members__:
            return VerificationResponse[value.strip().upper()]
        try:
            return VerificationResponse(value)
        except (TypeError, ValueError):
            return None

    def verify(self, obj: TrackedObject) -> List[Tuple[str, VerificationResponse]]:
        """
        Consult all verification services about an object and apply the votes.

        The caller is expected to hold the model lock.

        Args:
            obj: Object to verify; updated in place

        Returns:
            List of (service name, applied response) pairs; failed calls are
            reported as UNKNOWN
        """
        votes = []
        for service in self.services:
            try:
                raw_response = service.call(obj.to_message())
            except ServiceCallError as e:
                logger.warning(f"Verification of object {obj.object_id} failed: {e}")
                votes.append((service.name, VerificationResponse.UNKNOWN))
                continue

            response = self._to_response(raw_response)
            if response is None:
                logger.warning(f"Verification service {service.name} returned an invalid response: {raw_response!r}")
                response = VerificationResponse.UNKNOWN

            if response == VerificationResponse.DISCARD:
                logger.info(f"Discarded object {obj.object_id} due to DISCARD message from service {service.name}")
                obj.set_state(ObjectState.DISCARDED)
            elif response == VerificationResponse.CONFIRM:
                logger.info(f"We got a CONFIRMation for object {obj.object_id} from service {service.name}!")
                obj.add_support(self.config['confirmation_support'])
            else:
                logger.info(f"Verification service {service.name} cannot help us with object {obj.object_id} at the moment")

            votes.append((service.name, response))

        return votes

    def __len__(self) -> int:
        return len(self.services)
