from sqlalchemy import select

from admin_service.modules.entitlements.models import ModuleFeatureMapping
from admin_service.modules.entitlements.projection import EntitlementProjection


def test_projection_filters_inactive_links(db, features, modules, plans):
    f_active = features.create_feature("Online Booking")
    f_inactive = features.create_feature("Walk-ins")
    m1 = modules.create_module("Scheduling")
    m2 = modules.create_module("Payments")
    modules.add_features(m1.id, [f_active.id, f_inactive.id])
    row = db.scalar(
        select(ModuleFeatureMapping).where(ModuleFeatureMapping.feature_id == f_inactive.id)
    )
    row.is_active = False
    db.commit()

    plan = plans.create_plan("Pro", [m1.id, m2.id])
    projected = EntitlementProjection(db).get_plan(plan.id)

    by_name = {m.name: m for m in projected.modules}
    assert set(by_name) == {"Scheduling", "Payments"}
    assert [f.name for f in by_name["Scheduling"].features] == ["Online Booking"]
    assert by_name["Payments"].features == []


def test_projection_counts_distinct_active_subscribers(db, plans, subscribe):
    plan = plans.create_plan("Team")
    subscribe(plan.id, "user-1")
    subscribe(plan.id, "user-2")
    subscribe(plan.id, "user-3", is_active=False)

    detail = plans.get_plan(plan.id)

    assert detail.subscriber_count == 2
    assert detail.subscriber_ids == ["user-1", "user-2"]
    assert plans.list_plans()[0].subscriber_count == 2


def test_list_plans_newest_first_with_same_shape(features, modules, plans):
    feature = features.create_feature("SMS Reminders")
    module = modules.create_module("Notifications")
    modules.add_features(module.id, [feature.id])
    plans.create_plan("Basic")
    plans.create_plan("Pro", [module.id])

    listed = plans.list_plans()

    assert [p.name for p in listed] == ["Pro", "Basic"]
    assert listed[0].modules[0].features[0].name == "SMS Reminders"
    assert listed[1].modules == []


def test_projection_reflects_changes_immediately(features, modules, plans):
    feature = features.create_feature("Invoices")
    module = modules.create_module("Billing")
    plan = plans.create_plan("Business", [module.id])
    assert plans.get_plan(plan.id).modules[0].features == []

    modules.add_features(module.id, [feature.id])
    assert [f.id for f in plans.get_plan(plan.id).modules[0].features] == [feature.id]

    modules.remove_features(module.id, [feature.id])
    assert plans.get_plan(plan.id).modules[0].features == []


def test_notifications_scenario(features, modules, plans):
    sms = features.create_feature("SMS Reminders")
    notifications = modules.create_module("Notifications")
    assert modules.add_features(notifications.id, [sms.id]).added_count == 1

    pro = plans.create_plan("Pro", [notifications.id])
    assert len(pro.modules) == 1

    projected = plans.get_plan(pro.id)
    assert projected.modules[0].name == "Notifications"
    assert [f.name for f in projected.modules[0].features] == ["SMS Reminders"]
