import pytest
from sqlalchemy import select

from admin_service.core.config import Settings
from admin_service.core.errors import ConflictError, NotFoundError, ValidationError
from admin_service.modules.entitlements.models import ModuleFeatureMapping, PlanModuleMapping
from admin_service.modules.entitlements.repository import MappingRepository
from admin_service.modules.entitlements.service import FeatureService, PlanService


# ---- Features ----


def test_feature_crud(features):
    created = features.create_feature("  SMS Reminders  ")
    assert created.name == "SMS Reminders"
    assert features.get_feature(created.id).name == "SMS Reminders"

    renamed = features.update_feature(created.id, "Text Reminders")
    assert renamed.name == "Text Reminders"
    assert [f.name for f in features.list_features()] == ["Text Reminders"]

    features.delete_feature(created.id)
    with pytest.raises(NotFoundError):
        features.get_feature(created.id)


@pytest.mark.parametrize("name", ["", "x", " y ", "z" * 51])
def test_feature_name_length_is_validated(features, name):
    with pytest.raises(ValidationError):
        features.create_feature(name)


def test_feature_names_are_unique(features):
    first = features.create_feature("Waitlist")
    other = features.create_feature("Deposits")

    with pytest.raises(ConflictError):
        features.create_feature("Waitlist")
    with pytest.raises(ConflictError):
        features.update_feature(other.id, "Waitlist")
    # Renaming to its own name is fine
    assert features.update_feature(first.id, "Waitlist").name == "Waitlist"


def test_feature_missing_ids(features):
    with pytest.raises(NotFoundError):
        features.update_feature("missing", "Anything")
    with pytest.raises(NotFoundError):
        features.delete_feature("missing")


def test_feature_delete_blocked_by_active_module_link(db, features, modules):
    feature = features.create_feature("Reports")
    module = modules.create_module("Analytics")
    modules.add_features(module.id, [feature.id])

    with pytest.raises(ConflictError) as excinfo:
        features.delete_feature(feature.id)
    assert excinfo.value.details == {"active_module_links": 1}

    modules.remove_features(module.id, [feature.id])
    features.delete_feature(feature.id)
    assert features.list_features() == []


def test_feature_delete_clears_inactive_links(db, features, modules):
    feature = features.create_feature("Legacy Export")
    module = modules.create_module("Data")
    modules.add_features(module.id, [feature.id])
    row = db.scalar(select(ModuleFeatureMapping).where(ModuleFeatureMapping.feature_id == feature.id))
    row.is_active = False
    db.commit()

    features.delete_feature(feature.id)

    assert list(db.scalars(select(ModuleFeatureMapping))) == []


# ---- Modules ----


def test_module_crud(modules):
    created = modules.create_module("Notifications")
    assert modules.get_module(created.id).name == "Notifications"
    assert modules.update_module(created.id, "Messaging").name == "Messaging"
    assert [m.name for m in modules.list_modules()] == ["Messaging"]

    modules.delete_module(created.id)
    with pytest.raises(NotFoundError):
        modules.get_module(created.id)


def test_module_names_are_unique(modules):
    modules.create_module("Scheduling")
    with pytest.raises(ConflictError):
        modules.create_module("Scheduling")


def test_module_delete_blocked_while_in_active_plan(db, modules, plans):
    module = modules.create_module("Inventory")
    plan = plans.create_plan("Retail", [module.id])

    with pytest.raises(ConflictError):
        modules.delete_module(module.id)

    plans.remove_modules(plan.id, [module.id])
    modules.delete_module(module.id)

    # The inactive plan link goes with the module
    assert list(db.scalars(select(PlanModuleMapping))) == []
    assert plans.get_plan(plan.id).modules == []


# ---- Plans ----


def test_create_plan_links_each_module_once(db, modules, plans):
    m1 = modules.create_module("Billing")
    m2 = modules.create_module("Booking")

    plan = plans.create_plan("Pro", [m2.id, m1.id, m2.id], plan_meta={"tier": 2})

    assert plan.name == "Pro"
    assert plan.plan_meta == {"tier": 2}
    assert sorted(m.id for m in plan.modules) == sorted([m1.id, m2.id])
    rows = list(db.scalars(select(PlanModuleMapping).where(PlanModuleMapping.plan_id == plan.id)))
    assert len(rows) == 2
    assert all(row.is_active for row in rows)


def test_create_plan_with_unknown_module_creates_nothing(plans, modules):
    module = modules.create_module("Payroll")

    with pytest.raises(ValidationError):
        plans.create_plan("Broken", [module.id, "ghost"])

    assert plans.list_plans() == []


def test_plan_names_are_unique_on_create(plans):
    plans.create_plan("Starter")
    with pytest.raises(ConflictError):
        plans.create_plan("Starter")


def test_plan_rename_collision(plans):
    starter = plans.create_plan("Starter")
    plans.create_plan("Gold")

    with pytest.raises(ConflictError):
        plans.update_plan(starter.id, "Gold")

    assert plans.update_plan(starter.id, "Starter").name == "Starter"


def test_plan_update_keeps_meta_when_omitted(plans):
    plan = plans.create_plan("Enterprise", plan_meta={"seats": 50})

    renamed = plans.update_plan(plan.id, "Enterprise Plus")
    assert renamed.plan_meta == {"seats": 50}

    replaced = plans.update_plan(plan.id, "Enterprise Plus", plan_meta={"seats": 100})
    assert replaced.plan_meta == {"seats": 100}


def test_plan_update_missing(plans):
    with pytest.raises(NotFoundError):
        plans.update_plan("missing", "Name")
    with pytest.raises(NotFoundError):
        plans.get_plan("missing")


def test_plan_delete_blocked_by_active_subscribers(plans, modules, subscribe):
    module = modules.create_module("Reports")
    plan = plans.create_plan("Team", [module.id])
    subscribe(plan.id, "user-1")

    with pytest.raises(ConflictError) as excinfo:
        plans.delete_plan(plan.id)
    assert excinfo.value.details == {"subscriber_count": 1}


def test_plan_delete_removes_links(db, plans, modules, subscribe):
    module = modules.create_module("Reports")
    plan = plans.create_plan("Trial", [module.id])
    subscribe(plan.id, "user-1", is_active=False)

    plans.delete_plan(plan.id)

    assert plans.list_plans() == []
    assert list(db.scalars(select(PlanModuleMapping))) == []
    assert modules.get_module(module.id).name == "Reports"


def test_create_plan_rolls_back_plan_row_when_a_link_fails(db, modules, plans, monkeypatch):
    m1 = modules.create_module("Bookings")
    m2 = modules.create_module("Vouchers")
    original = MappingRepository.stage_link
    calls = []

    def flaky_stage_link(self, parent_id, child_id):
        calls.append(child_id)
        if len(calls) == 2:
            raise RuntimeError("store unavailable")
        return original(self, parent_id, child_id)

    monkeypatch.setattr(MappingRepository, "stage_link", flaky_stage_link)

    with pytest.raises(RuntimeError):
        plans.create_plan("Spa", [m1.id, m2.id])

    monkeypatch.undo()
    assert plans.list_plans() == []
    assert list(db.scalars(select(PlanModuleMapping))) == []
    # Nothing half-written blocks a retry under the same name
    assert len(plans.create_plan("Spa", [m1.id, m2.id]).modules) == 2


def test_name_limits_come_from_injected_settings(db):
    strict = FeatureService(db, settings=Settings(FEATURE_NAME_MAX_LENGTH=10))
    with pytest.raises(ValidationError):
        strict.create_feature("Twenty Character Nm")

    loose = PlanService(db, settings=Settings(PLAN_NAME_MAX_LENGTH=150))
    assert loose.create_plan("P" * 120).name == "P" * 120
