from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from admin_service.core.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Feature(Base):
    __tablename__ = "features"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now
    )

    module_links: Mapped[list["ModuleFeatureMapping"]] = relationship(
        "ModuleFeatureMapping",
        back_populates="feature",
        cascade="all, delete-orphan",
    )


class Module(Base):
    __tablename__ = "modules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now
    )

    feature_mappings: Mapped[list["ModuleFeatureMapping"]] = relationship(
        "ModuleFeatureMapping",
        back_populates="module",
        cascade="all, delete-orphan",
        order_by=lambda: (ModuleFeatureMapping.created_at, ModuleFeatureMapping.feature_id),
    )
    plan_links: Mapped[list["PlanModuleMapping"]] = relationship(
        "PlanModuleMapping",
        back_populates="module",
        cascade="all, delete-orphan",
    )


class Plan(Base):
    __tablename__ = "plans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    plan_meta: Mapped[dict | None] = mapped_column(JSON, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now
    )

    module_mappings: Mapped[list["PlanModuleMapping"]] = relationship(
        "PlanModuleMapping",
        back_populates="plan",
        cascade="all, delete-orphan",
    )
    user_mappings: Mapped[list["PlanUserMapping"]] = relationship(
        "PlanUserMapping",
        back_populates="plan",
        cascade="all, delete-orphan",
    )


class ModuleFeatureMapping(Base):
    __tablename__ = "module_feature_mappings"
    __table_args__ = (
        UniqueConstraint("module_id", "feature_id", name="uq_module_feature"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    module_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("modules.id", ondelete="CASCADE"), index=True
    )
    feature_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("features.id", ondelete="CASCADE"), index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    module: Mapped["Module"] = relationship("Module", back_populates="feature_mappings")
    feature: Mapped["Feature"] = relationship("Feature", back_populates="module_links")


class PlanModuleMapping(Base):
    __tablename__ = "plan_module_mappings"
    __table_args__ = (
        UniqueConstraint("plan_id", "module_id", name="uq_plan_module"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    plan_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("plans.id", ondelete="CASCADE"), index=True
    )
    module_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("modules.id", ondelete="CASCADE"), index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    plan: Mapped["Plan"] = relationship("Plan", back_populates="module_mappings")
    module: Mapped["Module"] = relationship("Module", back_populates="plan_links")


class PlanUserMapping(Base):
    """Subscriber assignment. Written by the subscription flow, read here."""

    __tablename__ = "plan_user_mappings"
    __table_args__ = (
        UniqueConstraint("plan_id", "user_id", name="uq_plan_user"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    plan_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("plans.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    plan: Mapped["Plan"] = relationship("Plan", back_populates="user_mappings")
