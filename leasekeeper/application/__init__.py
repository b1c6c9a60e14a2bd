"""Application layer - The election participant."""

from .participant import Participant

__all__ = ["Participant"]
