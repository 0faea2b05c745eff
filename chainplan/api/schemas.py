from __future__ import annotations

from datetime import datetime
from typing import Any
from pydantic import BaseModel, ConfigDict, Field

from chainplan.contracts.entities import ModuleType, ScenarioStatus, ToolType


class _FromEntity(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ProjectOut(_FromEntity):
    id: str
    user_id: str
    name: str
    tool_type: ToolType
    description: str | None = None
    input_data: dict[str, Any] = Field(default_factory=dict)
    results_data: dict[str, Any] = Field(default_factory=dict)
    size_mb: float = 0.0
    created_at: datetime
    updated_at: datetime


class ScenarioOut(_FromEntity):
    id: str
    project_id: str
    user_id: str
    module_type: ModuleType
    name: str
    description: str | None = None
    status: ScenarioStatus
    last_result_number: int = 0
    created_at: datetime
    updated_at: datetime


class ScenarioInputOut(_FromEntity):
    scenario_id: str
    input_data: dict[str, Any]
    updated_at: datetime


class ResultOut(_FromEntity):
    id: str
    scenario_id: str
    project_id: str
    module_type: ModuleType
    name: str
    result_number: int
    metrics: dict[str, Any] = Field(default_factory=dict)
    output_data: dict[str, Any] = Field(default_factory=dict)
    version: int = 1
    created_at: datetime


class ResultHandle(BaseModel):
    """What create-result hands back; the caller already holds the payload."""

    id: str
    name: str
    result_number: int
    created_at: datetime


class VersionedResultOut(BaseModel):
    result_number: int
    timestamp: datetime
    data: Any = None


class RenameResponse(BaseModel):
    success: bool
    error: str | None = None
    # True when the name was taken (as opposed to a store failure)
    conflict: bool = False
    # Alternatives offered when the name was taken
    suggestions: list[str] = Field(default_factory=list)
    name: str | None = None


class DeleteResponse(BaseModel):
    success: bool
    error: str | None = None


class EnsureProjectRequest(BaseModel):
    tool_type: ToolType


class ProjectCreateRequest(BaseModel):
    tool_type: ToolType
    name: str | None = None
    description: str | None = None


class ProjectUpdateRequest(BaseModel):
    description: str | None = None
    input_data: dict[str, Any] | None = None
    results_data: dict[str, Any] | None = None
    size_mb: float | None = Field(default=None, ge=0)


class RenameRequest(BaseModel):
    name: str


class EnsureScenarioRequest(BaseModel):
    module_type: ModuleType


class ScenarioCreateRequest(BaseModel):
    module_type: ModuleType
    name: str | None = None
    description: str | None = None


class ScenarioStatusRequest(BaseModel):
    status: ScenarioStatus


class ScenarioInputRequest(BaseModel):
    input_data: dict[str, Any] = Field(default_factory=dict)


class ResultCreateRequest(BaseModel):
    metrics: dict[str, Any] = Field(default_factory=dict)
    payload: dict[str, Any] = Field(default_factory=dict)
    # defaults to the scenario's module
    module_type: ModuleType | None = None


class HistoryAddRequest(BaseModel):
    data: Any = None


class HistoryAddResponse(BaseModel):
    scenario_id: str
    result_number: int
