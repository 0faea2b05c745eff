from __future__ import annotations


class PlanningError(Exception):
    pass


class NotAuthenticated(PlanningError):
    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class NotFound(PlanningError):
    pass


class BadRequest(PlanningError):
    pass


class InvalidTransition(BadRequest):
    pass


class NameConflict(PlanningError):
    """A name is already taken in its scope; carries remediation suggestions."""

    def __init__(self, message: str, *, name: str, suggestions: list[str] | None = None) -> None:
        super().__init__(message)
        self.name = name
        self.suggestions = suggestions or []


class StoreUnavailable(PlanningError):
    pass


class RaceExhausted(PlanningError):
    """A write kept colliding after its single recovery attempt."""
