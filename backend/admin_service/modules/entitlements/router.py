from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from admin_service.core.config import Settings
from admin_service.core.database import get_db
from admin_service.core.errors import EntitlementError
from .schemas import (
    FeatureCreate,
    FeatureRead,
    FeatureUpdate,
    LinkSummary,
    ModuleCreate,
    ModuleFeaturesRequest,
    ModuleRead,
    ModuleUpdate,
    PlanCreate,
    PlanDetail,
    PlanEntitlements,
    PlanModulesRequest,
    PlanUpdate,
    UnlinkSummary,
)
from .service import FeatureService, ModuleService, PlanService


router = APIRouter(tags=["entitlements"])

DbDep = Annotated[Session, Depends(get_db)]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_feature_service(db: DbDep, settings: SettingsDep) -> FeatureService:
    return FeatureService(db, settings=settings)


def get_module_service(db: DbDep, settings: SettingsDep) -> ModuleService:
    return ModuleService(db, settings=settings)


def get_plan_service(db: DbDep, settings: SettingsDep) -> PlanService:
    return PlanService(db, settings=settings)


FeatureServiceDep = Annotated[FeatureService, Depends(get_feature_service)]
ModuleServiceDep = Annotated[ModuleService, Depends(get_module_service)]
PlanServiceDep = Annotated[PlanService, Depends(get_plan_service)]


def _http_error(exc: EntitlementError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


# ---- Features ----


@router.get("/features", response_model=list[FeatureRead])
def list_features(service: FeatureServiceDep):
    return service.list_features()


@router.post("/features", response_model=FeatureRead, status_code=status.HTTP_201_CREATED)
def create_feature(payload: FeatureCreate, service: FeatureServiceDep):
    try:
        return service.create_feature(payload.name)
    except EntitlementError as exc:
        raise _http_error(exc)


@router.get("/features/{feature_id}", response_model=FeatureRead)
def get_feature(feature_id: str, service: FeatureServiceDep):
    try:
        return service.get_feature(feature_id)
    except EntitlementError as exc:
        raise _http_error(exc)


@router.put("/features/{feature_id}", response_model=FeatureRead)
def update_feature(feature_id: str, payload: FeatureUpdate, service: FeatureServiceDep):
    try:
        return service.update_feature(feature_id, payload.name)
    except EntitlementError as exc:
        raise _http_error(exc)


@router.delete("/features/{feature_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_feature(feature_id: str, service: FeatureServiceDep):
    try:
        service.delete_feature(feature_id)
    except EntitlementError as exc:
        raise _http_error(exc)


# ---- Modules ----


@router.get("/modules", response_model=list[ModuleRead])
def list_modules(service: ModuleServiceDep):
    return service.list_modules()


@router.post("/modules", response_model=ModuleRead, status_code=status.HTTP_201_CREATED)
def create_module(payload: ModuleCreate, service: ModuleServiceDep):
    try:
        return service.create_module(payload.name)
    except EntitlementError as exc:
        raise _http_error(exc)


@router.get("/modules/{module_id}", response_model=ModuleRead)
def get_module(module_id: str, service: ModuleServiceDep):
    try:
        return service.get_module(module_id)
    except EntitlementError as exc:
        raise _http_error(exc)


@router.put("/modules/{module_id}", response_model=ModuleRead)
def update_module(module_id: str, payload: ModuleUpdate, service: ModuleServiceDep):
    try:
        return service.update_module(module_id, payload.name)
    except EntitlementError as exc:
        raise _http_error(exc)


@router.delete("/modules/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_module(module_id: str, service: ModuleServiceDep):
    try:
        service.delete_module(module_id)
    except EntitlementError as exc:
        raise _http_error(exc)


@router.put("/modules/{module_id}/features", response_model=LinkSummary)
def add_features_to_module(
    module_id: str, payload: ModuleFeaturesRequest, service: ModuleServiceDep
):
    try:
        return service.add_features(module_id, payload.feature_ids)
    except EntitlementError as exc:
        raise _http_error(exc)


@router.delete("/modules/{module_id}/features", response_model=UnlinkSummary)
def remove_features_from_module(
    module_id: str, payload: ModuleFeaturesRequest, service: ModuleServiceDep
):
    try:
        return service.remove_features(module_id, payload.feature_ids)
    except EntitlementError as exc:
        raise _http_error(exc)


# ---- Plans ----


@router.get("/plans", response_model=list[PlanEntitlements])
def list_plans(service: PlanServiceDep):
    return service.list_plans()


@router.post("/plans", response_model=PlanDetail, status_code=status.HTTP_201_CREATED)
def create_plan(payload: PlanCreate, service: PlanServiceDep):
    try:
        return service.create_plan(payload.name, payload.module_ids, payload.plan_meta)
    except EntitlementError as exc:
        raise _http_error(exc)


@router.get("/plans/{plan_id}", response_model=PlanDetail)
def get_plan(plan_id: str, service: PlanServiceDep):
    try:
        return service.get_plan(plan_id)
    except EntitlementError as exc:
        raise _http_error(exc)


@router.put("/plans/{plan_id}", response_model=PlanDetail)
def update_plan(plan_id: str, payload: PlanUpdate, service: PlanServiceDep):
    try:
        return service.update_plan(plan_id, payload.name, payload.plan_meta)
    except EntitlementError as exc:
        raise _http_error(exc)


@router.delete("/plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_plan(plan_id: str, service: PlanServiceDep):
    try:
        service.delete_plan(plan_id)
    except EntitlementError as exc:
        raise _http_error(exc)


@router.put("/plans/{plan_id}/modules", response_model=LinkSummary)
def add_modules_to_plan(plan_id: str, payload: PlanModulesRequest, service: PlanServiceDep):
    try:
        return service.add_modules(plan_id, payload.module_ids)
    except EntitlementError as exc:
        raise _http_error(exc)


@router.delete("/plans/{plan_id}/modules", response_model=UnlinkSummary)
def remove_modules_from_plan(plan_id: str, payload: PlanModulesRequest, service: PlanServiceDep):
    try:
        return service.remove_modules(plan_id, payload.module_ids)
    except EntitlementError as exc:
        raise _http_error(exc)
