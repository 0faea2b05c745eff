from __future__ import annotations
from datetime import datetime
from enum import Enum
from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, JSON, String, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from chainplan.contracts.entities import ModuleType, ScenarioStatus, ToolType
from chainplan.core.db import Base
from chainplan.core.utils import utc_now


def _enum(enum_cls: type[Enum]) -> SAEnum:
    # store values ("gfa"), not member names, as plain strings
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda e: [m.value for m in e],
    )


class ProjectRow(Base):
    __tablename__ = "project"
    __table_args__ = (UniqueConstraint("user_id", "name"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    tool_type: Mapped[ToolType] = mapped_column(_enum(ToolType), index=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    input_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    results_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    size_mb: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )


class ScenarioRow(Base):
    __tablename__ = "scenario"
    __table_args__ = (UniqueConstraint("project_id", "module_type", "name"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    project_id: Mapped[str] = mapped_column(
        String, ForeignKey("project.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    module_type: Mapped[ModuleType] = mapped_column(_enum(ModuleType), nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[ScenarioStatus] = mapped_column(
        _enum(ScenarioStatus), nullable=False, default=ScenarioStatus.pending
    )  # pending|running|completed|failed
    last_result_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )


class ScenarioInputRow(Base):
    __tablename__ = "scenario_input"
    __table_args__ = (UniqueConstraint("scenario_id"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    scenario_id: Mapped[str] = mapped_column(
        String, ForeignKey("scenario.id", ondelete="CASCADE"), index=True, nullable=False
    )
    input_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )


class ResultRow(Base):
    __tablename__ = "scenario_output"
    __table_args__ = (
        UniqueConstraint("scenario_id", "name"),
        UniqueConstraint("scenario_id", "result_number"),
        Index("ix_scenario_output_scenario_created", "scenario_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    scenario_id: Mapped[str] = mapped_column(
        String, ForeignKey("scenario.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[str] = mapped_column(
        String, ForeignKey("project.id", ondelete="CASCADE"), index=True, nullable=False
    )
    module_type: Mapped[ModuleType] = mapped_column(_enum(ModuleType), nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    result_number: Mapped[int] = mapped_column(Integer, nullable=False)
    metrics: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    output_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
