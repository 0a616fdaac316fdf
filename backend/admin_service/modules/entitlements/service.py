from __future__ import annotations

import logging
from typing import Any, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from admin_service.core.config import Settings, settings as default_settings
from admin_service.core.errors import ConflictError, NotFoundError, ValidationError
from .linking import (
    PARTIAL_MATCH,
    STRICT_MATCH,
    HardUnlink,
    LinkResult,
    LinkStatus,
    MappingEngine,
    SoftUnlink,
    UnlinkResult,
)
from .models import Feature, Module, Plan
from .projection import EntitlementProjection
from .repository import MODULE_FEATURES, PLAN_MODULES, EntitlementsRepository
from .schemas import (
    FeatureRead,
    LinkSummary,
    ModuleRead,
    PlanDetail,
    PlanEntitlements,
    UnlinkSummary,
)


logger = logging.getLogger(__name__)


def _clean_name(value: str, max_length: int, label: str) -> str:
    name = (value or "").strip()
    if len(name) < 2:
        raise ValidationError(f"{label} name must be at least 2 characters long")
    if len(name) > max_length:
        raise ValidationError(f"{label} name must be at most {max_length} characters long")
    return name


class _Registry:
    def __init__(
        self,
        db: Session,
        repo: EntitlementsRepository | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.repo = repo or EntitlementsRepository(db)
        self.settings = settings or default_settings

    def _save(self, obj, conflict_message: str) -> None:
        # The unique index on name catches races the pre-check cannot
        try:
            self.repo.save(obj)
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(conflict_message) from exc


class FeatureService(_Registry):
    def list_features(self) -> list[FeatureRead]:
        return [FeatureRead.model_validate(f) for f in self.repo.list_features()]

    def get_feature(self, feature_id: str) -> FeatureRead:
        return FeatureRead.model_validate(self._require(feature_id))

    def create_feature(self, name: str) -> FeatureRead:
        name = _clean_name(name, self.settings.FEATURE_NAME_MAX_LENGTH, "Feature")
        if self.repo.get_feature_by_name(name):
            raise ConflictError(f"Feature '{name}' already exists")
        feature = Feature(name=name)
        self._save(feature, f"Feature '{name}' already exists")
        logger.info("Created feature '%s' (%s)", feature.name, feature.id)
        return FeatureRead.model_validate(feature)

    def update_feature(self, feature_id: str, name: str) -> FeatureRead:
        feature = self._require(feature_id)
        name = _clean_name(name, self.settings.FEATURE_NAME_MAX_LENGTH, "Feature")
        other = self.repo.get_feature_by_name(name)
        if other and other.id != feature.id:
            raise ConflictError(f"Feature '{name}' already exists")
        feature.name = name
        self._save(feature, f"Feature '{name}' already exists")
        return FeatureRead.model_validate(feature)

    def delete_feature(self, feature_id: str) -> None:
        feature = self._require(feature_id)
        in_use = self.repo.count_active_module_links(feature.id)
        if in_use:
            raise ConflictError(
                "Feature is still assigned to modules",
                details={"active_module_links": in_use},
            )
        self.repo.remove(feature)
        logger.info("Deleted feature %s", feature_id)

    def _require(self, feature_id: str) -> Feature:
        feature = self.repo.get_feature_by_id(feature_id)
        if not feature:
            raise NotFoundError("Feature not found")
        return feature


class ModuleService(_Registry):
    def __init__(
        self,
        db: Session,
        repo: EntitlementsRepository | None = None,
        settings: Settings | None = None,
    ):
        super().__init__(db, repo, settings)
        self.features = MappingEngine(db, MODULE_FEATURES, HardUnlink())

    def list_modules(self) -> list[ModuleRead]:
        return [ModuleRead.model_validate(m) for m in self.repo.list_modules()]

    def get_module(self, module_id: str) -> ModuleRead:
        return ModuleRead.model_validate(self._require(module_id))

    def create_module(self, name: str) -> ModuleRead:
        name = _clean_name(name, self.settings.MODULE_NAME_MAX_LENGTH, "Module")
        if self.repo.get_module_by_name(name):
            raise ConflictError(f"Module '{name}' already exists")
        module = Module(name=name)
        self._save(module, f"Module '{name}' already exists")
        logger.info("Created module '%s' (%s)", module.name, module.id)
        return ModuleRead.model_validate(module)

    def update_module(self, module_id: str, name: str) -> ModuleRead:
        module = self._require(module_id)
        name = _clean_name(name, self.settings.MODULE_NAME_MAX_LENGTH, "Module")
        other = self.repo.get_module_by_name(name)
        if other and other.id != module.id:
            raise ConflictError(f"Module '{name}' already exists")
        module.name = name
        self._save(module, f"Module '{name}' already exists")
        return ModuleRead.model_validate(module)

    def delete_module(self, module_id: str) -> None:
        module = self._require(module_id)
        in_use = self.repo.count_active_plan_links(module.id)
        if in_use:
            raise ConflictError(
                "Module is still assigned to plans",
                details={"active_plan_links": in_use},
            )
        self.repo.remove(module)
        logger.info("Deleted module %s", module_id)

    def add_features(self, module_id: str, feature_ids: Sequence[str]) -> LinkSummary:
        module = self._require(module_id)
        result = self.features.link(module.id, feature_ids, PARTIAL_MATCH)
        if result.status is LinkStatus.UNRESOLVED:
            raise NotFoundError("Features not found", details={"unresolved": result.unresolved})
        if result.status is LinkStatus.NOOP:
            # Historical contract: an empty delta surfaces as not-found
            raise NotFoundError(
                "Features already added to module",
                details={"already_present": result.already_present},
            )
        return _link_summary(module.id, result)

    def remove_features(self, module_id: str, feature_ids: Sequence[str]) -> UnlinkSummary:
        module = self._require(module_id)
        result = self.features.unlink(module.id, feature_ids)
        if result.status is LinkStatus.NOOP:
            raise NotFoundError("No feature mappings found to remove")
        return _unlink_summary(module.id, result)

    def _require(self, module_id: str) -> Module:
        module = self.repo.get_module_by_id(module_id)
        if not module:
            raise NotFoundError("Module not found")
        return module


class PlanService(_Registry):
    def __init__(
        self,
        db: Session,
        repo: EntitlementsRepository | None = None,
        settings: Settings | None = None,
    ):
        super().__init__(db, repo, settings)
        self.modules = MappingEngine(db, PLAN_MODULES, SoftUnlink())
        self.projection = EntitlementProjection(db, self.repo)

    def list_plans(self) -> list[PlanEntitlements]:
        return self.projection.list_plans()

    def get_plan(self, plan_id: str) -> PlanDetail:
        self._require(plan_id)
        return self.projection.get_plan(plan_id)

    def create_plan(
        self,
        name: str,
        module_ids: Sequence[str] = (),
        plan_meta: dict[str, Any] | None = None,
    ) -> PlanDetail:
        name = _clean_name(name, self.settings.PLAN_NAME_MAX_LENGTH, "Plan")
        if self.repo.get_plan_by_name(name):
            raise ConflictError(f"Plan '{name}' already exists")
        resolved, unresolved = self.modules.resolve(module_ids)
        if unresolved:
            raise ValidationError(
                "One or more modules not found", details={"unresolved": unresolved}
            )

        # Plan row and its module links commit together
        plan = Plan(name=name, plan_meta=plan_meta)
        try:
            self.db.add(plan)
            self.db.flush()
            for module_id in resolved:
                self.modules.repo.stage_link(plan.id, module_id)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(f"Plan '{name}' already exists") from exc
        except Exception:
            self.db.rollback()
            raise
        logger.info("Created plan '%s' (%s) with %d module(s)", plan.name, plan.id, len(resolved))
        return self.projection.get_plan(plan.id)

    def update_plan(
        self,
        plan_id: str,
        name: str,
        plan_meta: dict[str, Any] | None = None,
    ) -> PlanDetail:
        plan = self._require(plan_id)
        name = _clean_name(name, self.settings.PLAN_NAME_MAX_LENGTH, "Plan")
        if self.repo.get_plan_by_name(name, exclude_id=plan.id):
            raise ConflictError("Plan name already exists")
        plan.name = name
        if plan_meta is not None:
            plan.plan_meta = plan_meta
        self._save(plan, "Plan name already exists")
        return self.projection.get_plan(plan.id)

    def delete_plan(self, plan_id: str) -> None:
        plan = self._require(plan_id)
        subscribers = self.repo.count_active_subscribers([plan.id]).get(plan.id, 0)
        if subscribers:
            raise ConflictError(
                "Plan still has active subscribers",
                details={"subscriber_count": subscribers},
            )
        self.repo.remove(plan)
        logger.info("Deleted plan %s", plan_id)

    def add_modules(self, plan_id: str, module_ids: Sequence[str]) -> LinkSummary:
        plan = self._require(plan_id)
        result = self.modules.link(plan.id, module_ids, STRICT_MATCH)
        if result.status is LinkStatus.UNRESOLVED:
            raise ValidationError(
                "One or more modules not found", details={"unresolved": result.unresolved}
            )
        if result.status is LinkStatus.NOOP:
            raise ValidationError("All specified modules are already added to this plan")
        return _link_summary(plan.id, result)

    def remove_modules(self, plan_id: str, module_ids: Sequence[str]) -> UnlinkSummary:
        plan = self._require(plan_id)
        result = self.modules.unlink(plan.id, module_ids)
        if result.status is LinkStatus.NOOP:
            raise ValidationError("None of the specified modules are currently in this plan")
        return _unlink_summary(plan.id, result)

    def _require(self, plan_id: str) -> Plan:
        plan = self.repo.get_plan_by_id(plan_id)
        if not plan:
            raise NotFoundError("Plan not found")
        return plan


def _link_summary(parent_id: str, result: LinkResult) -> LinkSummary:
    return LinkSummary(
        parent_id=parent_id,
        added=result.added,
        added_count=result.added_count,
        already_present=result.already_present,
        unresolved=result.unresolved,
    )


def _unlink_summary(parent_id: str, result: UnlinkResult) -> UnlinkSummary:
    return UnlinkSummary(
        parent_id=parent_id,
        removed=result.removed,
        removed_ids=result.removed_ids,
    )
