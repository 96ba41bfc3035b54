# worldmodel/verification/__init__.py
"""
External verification of tracked objects.
"""

from worldmodel.verification.verifier import VerificationResponse, ObjectVerifier, CallbackVerifier
from worldmodel.verification.coordinator import VerificationCoordinator

__all__ = ['VerificationResponse', 'ObjectVerifier', 'CallbackVerifier', 'VerificationCoordinator']
