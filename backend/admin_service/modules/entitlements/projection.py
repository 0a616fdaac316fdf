"""
Read-side assembly of a plan's entitlements.

Plan → active module links → module → active feature links → feature, plus
the number of distinct active subscribers. Nothing is cached; each call
reads the current rows.
"""
from __future__ import annotations

from sqlalchemy.orm import Session

from admin_service.core.errors import NotFoundError
from .models import Plan, PlanModuleMapping
from .repository import EntitlementsRepository
from .schemas import (
    FeatureRead,
    ModuleEntitlements,
    PlanDetail,
    PlanEntitlements,
)


class EntitlementProjection:
    def __init__(self, db: Session, repo: EntitlementsRepository | None = None):
        self.db = db
        self.repo = repo or EntitlementsRepository(db)

    def get_plan(self, plan_id: str) -> PlanDetail:
        plan = self.repo.get_plan_by_id(plan_id)
        if not plan:
            raise NotFoundError("Plan not found")
        links = self.repo.list_active_plan_modules([plan.id])
        counts = self.repo.count_active_subscribers([plan.id])
        return PlanDetail.model_validate(
            {
                **self._plan_fields(plan, links, counts.get(plan.id, 0)),
                "subscriber_ids": self.repo.list_active_subscriber_ids(plan.id),
            }
        )

    def list_plans(self) -> list[PlanEntitlements]:
        plans = self.repo.list_plans()
        plan_ids = [plan.id for plan in plans]
        links_by_plan: dict[str, list[PlanModuleMapping]] = {pid: [] for pid in plan_ids}
        for link in self.repo.list_active_plan_modules(plan_ids):
            links_by_plan[link.plan_id].append(link)
        counts = self.repo.count_active_subscribers(plan_ids)
        return [
            PlanEntitlements.model_validate(
                self._plan_fields(plan, links_by_plan[plan.id], counts.get(plan.id, 0))
            )
            for plan in plans
        ]

    def _plan_fields(
        self,
        plan: Plan,
        links: list[PlanModuleMapping],
        subscriber_count: int,
    ) -> dict:
        return {
            "id": plan.id,
            "name": plan.name,
            "plan_meta": plan.plan_meta,
            "created_at": plan.created_at,
            "updated_at": plan.updated_at,
            "modules": [self._module_entitlements(link) for link in links],
            "subscriber_count": subscriber_count,
        }

    def _module_entitlements(self, link: PlanModuleMapping) -> ModuleEntitlements:
        module = link.module
        features = [
            FeatureRead.model_validate(mapping.feature)
            for mapping in module.feature_mappings
            if mapping.is_active
        ]
        return ModuleEntitlements.model_validate(
            {
                "id": module.id,
                "name": module.name,
                "created_at": module.created_at,
                "updated_at": module.updated_at,
                "features": features,
            }
        )
