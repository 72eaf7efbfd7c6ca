"""Failures surfaced by the persistence layer."""

from __future__ import annotations


class RoadmapError(Exception):
    """Base class for roadmap fetch/commit failures."""


class Unauthorized(RoadmapError):
    """The roadmap needs a password that was missing or wrong.

    Recoverable: prompt for credentials and retry the same operation.
    """

    def __init__(self, identifier: str):
        super().__init__(f"Roadmap {identifier!r} requires a valid password")
        self.identifier = identifier


class NotFound(RoadmapError):
    """The identifier does not resolve to a roadmap."""

    def __init__(self, identifier: str):
        super().__init__(f"Roadmap {identifier!r} not found")
        self.identifier = identifier


class BackendError(RoadmapError):
    """Any other storage or transport failure."""
