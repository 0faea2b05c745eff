"""SQLAlchemy persistence for projects, scenarios and results."""
from .models import ProjectRow, ResultRow, ScenarioInputRow, ScenarioRow
from .store import SqlCollection, SqlEntityStore

__all__ = [
    "ProjectRow",
    "ResultRow",
    "ScenarioInputRow",
    "ScenarioRow",
    "SqlCollection",
    "SqlEntityStore",
]
