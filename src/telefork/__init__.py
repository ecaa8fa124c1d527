"""Telefork telemetry delivery."""

from .client import TeleforkClient, TeleforkHttpError
from .processor import TeleforkProcessor

__all__ = ["TeleforkClient", "TeleforkHttpError", "TeleforkProcessor"]
