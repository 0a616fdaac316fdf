from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---- Feature Schemas ----


class FeatureCreate(BaseModel):
    name: str = Field(..., min_length=2)


class FeatureUpdate(BaseModel):
    name: str = Field(..., min_length=2)


class FeatureRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    created_at: datetime
    updated_at: datetime | None


# ---- Module Schemas ----


class ModuleCreate(BaseModel):
    name: str = Field(..., min_length=2)


class ModuleUpdate(BaseModel):
    name: str = Field(..., min_length=2)


class ModuleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    created_at: datetime
    updated_at: datetime | None


class ModuleFeaturesRequest(BaseModel):
    feature_ids: list[str] = Field(..., min_length=1)


# ---- Plan Schemas ----


class PlanCreate(BaseModel):
    name: str = Field(..., min_length=2)
    module_ids: list[str] = Field(default_factory=list)
    plan_meta: dict[str, Any] | None = None


class PlanUpdate(BaseModel):
    name: str = Field(..., min_length=2)
    plan_meta: dict[str, Any] | None = None


class PlanModulesRequest(BaseModel):
    module_ids: list[str] = Field(..., min_length=1)


# ---- Entitlement projection ----


class ModuleEntitlements(ModuleRead):
    features: list[FeatureRead] = []


class PlanEntitlements(BaseModel):
    id: str
    name: str
    plan_meta: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime | None
    modules: list[ModuleEntitlements] = []
    subscriber_count: int = 0


class PlanDetail(PlanEntitlements):
    subscriber_ids: list[str] = []


# ---- Mapping summaries ----


class LinkSummary(BaseModel):
    parent_id: str
    added: list[str]
    added_count: int
    already_present: list[str] = []
    unresolved: list[str] = []


class UnlinkSummary(BaseModel):
    parent_id: str
    removed: int
    removed_ids: list[str] = []
