from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from .models import (
    Feature,
    Module,
    ModuleFeatureMapping,
    Plan,
    PlanModuleMapping,
    PlanUserMapping,
)


class EntitlementsRepository:
    def __init__(self, db: Session):
        self.db = db

    def save(self, obj) -> None:
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)

    def remove(self, obj) -> None:
        self.db.delete(obj)
        self.db.commit()

    # ---- Features ----
    def list_features(self) -> list[Feature]:
        stmt = select(Feature).order_by(Feature.name)
        return list(self.db.scalars(stmt))

    def get_feature_by_id(self, feature_id: str) -> Feature | None:
        return self.db.get(Feature, feature_id)

    def get_feature_by_name(self, name: str) -> Feature | None:
        stmt = select(Feature).where(Feature.name == name)
        return self.db.scalar(stmt)

    def count_active_module_links(self, feature_id: str) -> int:
        stmt = select(func.count(ModuleFeatureMapping.id)).where(
            ModuleFeatureMapping.feature_id == feature_id,
            ModuleFeatureMapping.is_active.is_(True),
        )
        return self.db.scalar(stmt) or 0

    # ---- Modules ----
    def list_modules(self) -> list[Module]:
        stmt = select(Module).order_by(Module.name)
        return list(self.db.scalars(stmt))

    def get_module_by_id(self, module_id: str) -> Module | None:
        return self.db.get(Module, module_id)

    def get_module_by_name(self, name: str) -> Module | None:
        stmt = select(Module).where(Module.name == name)
        return self.db.scalar(stmt)

    def count_active_plan_links(self, module_id: str) -> int:
        stmt = select(func.count(PlanModuleMapping.id)).where(
            PlanModuleMapping.module_id == module_id,
            PlanModuleMapping.is_active.is_(True),
        )
        return self.db.scalar(stmt) or 0

    # ---- Plans ----
    def list_plans(self) -> list[Plan]:
        stmt = select(Plan).order_by(Plan.created_at.desc(), Plan.name)
        return list(self.db.scalars(stmt))

    def get_plan_by_id(self, plan_id: str) -> Plan | None:
        return self.db.get(Plan, plan_id)

    def get_plan_by_name(self, name: str, exclude_id: str | None = None) -> Plan | None:
        stmt = select(Plan).where(Plan.name == name)
        if exclude_id is not None:
            stmt = stmt.where(Plan.id != exclude_id)
        return self.db.scalar(stmt)

    def list_active_plan_modules(self, plan_ids: Sequence[str]) -> list[PlanModuleMapping]:
        """Active plan→module links with each module's feature links eagerly loaded."""
        if not plan_ids:
            return []
        stmt = (
            select(PlanModuleMapping)
            .options(
                selectinload(PlanModuleMapping.module)
                .selectinload(Module.feature_mappings)
                .selectinload(ModuleFeatureMapping.feature),
            )
            .where(
                PlanModuleMapping.plan_id.in_(plan_ids),
                PlanModuleMapping.is_active.is_(True),
            )
            .order_by(PlanModuleMapping.created_at, PlanModuleMapping.module_id)
        )
        return list(self.db.scalars(stmt))

    # ---- Subscribers ----
    def count_active_subscribers(self, plan_ids: Sequence[str]) -> dict[str, int]:
        if not plan_ids:
            return {}
        stmt = (
            select(PlanUserMapping.plan_id, func.count(func.distinct(PlanUserMapping.user_id)))
            .where(
                PlanUserMapping.plan_id.in_(plan_ids),
                PlanUserMapping.is_active.is_(True),
            )
            .group_by(PlanUserMapping.plan_id)
        )
        return {plan_id: count for plan_id, count in self.db.execute(stmt)}

    def list_active_subscriber_ids(self, plan_id: str) -> list[str]:
        stmt = (
            select(PlanUserMapping.user_id)
            .where(
                PlanUserMapping.plan_id == plan_id,
                PlanUserMapping.is_active.is_(True),
            )
            .distinct()
            .order_by(PlanUserMapping.user_id)
        )
        return list(self.db.scalars(stmt))


@dataclass(frozen=True)
class LinkRelation:
    """Describes one many-to-many mapping table between a parent and a child."""

    name: str
    mapping_model: type
    parent_column: str
    child_column: str
    child_model: type


MODULE_FEATURES = LinkRelation(
    name="module_features",
    mapping_model=ModuleFeatureMapping,
    parent_column="module_id",
    child_column="feature_id",
    child_model=Feature,
)

PLAN_MODULES = LinkRelation(
    name="plan_modules",
    mapping_model=PlanModuleMapping,
    parent_column="plan_id",
    child_column="module_id",
    child_model=Module,
)


class MappingRepository:
    """
    Data access for mapping rows of a single relation.

    The staging helpers only add work to the session; the caller owns the
    transaction and decides when to commit or roll back.
    """

    def __init__(self, db: Session, relation: LinkRelation):
        self.db = db
        self.relation = relation

    def existing_child_ids(self, child_ids: Sequence[str]) -> set[str]:
        if not child_ids:
            return set()
        model = self.relation.child_model
        stmt = select(model.id).where(model.id.in_(child_ids))
        return set(self.db.scalars(stmt))

    def find_links(
        self,
        parent_id: str,
        child_ids: Sequence[str],
        active_only: bool = False,
    ) -> list:
        if not child_ids:
            return []
        model = self.relation.mapping_model
        parent_col = getattr(model, self.relation.parent_column)
        child_col = getattr(model, self.relation.child_column)
        stmt = select(model).where(parent_col == parent_id, child_col.in_(child_ids))
        if active_only:
            stmt = stmt.where(model.is_active.is_(True))
        return list(self.db.scalars(stmt))

    def child_id_of(self, row) -> str:
        return getattr(row, self.relation.child_column)

    def stage_link(self, parent_id: str, child_id: str):
        row = self.relation.mapping_model(
            **{
                self.relation.parent_column: parent_id,
                self.relation.child_column: child_id,
                "is_active": True,
            }
        )
        self.db.add(row)
        return row

    def stage_reactivate(self, row) -> None:
        row.is_active = True
        self.db.add(row)

    def stage_deactivate(self, row) -> None:
        row.is_active = False
        self.db.add(row)

    def stage_delete(self, row) -> None:
        self.db.delete(row)
