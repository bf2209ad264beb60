"""HTTP submission collaborator for the logs intake API."""

from .client import HttpIntakeClient

__all__ = ["HttpIntakeClient"]
