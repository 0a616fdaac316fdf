import pytest
from fastapi.testclient import TestClient

from admin_service.core.config import Settings
from admin_service.main import create_app
from admin_service.modules.entitlements.models import PlanUserMapping
from admin_service.modules.entitlements.service import (
    FeatureService,
    ModuleService,
    PlanService,
)


@pytest.fixture()
def app():
    settings = Settings(DATABASE_URL="sqlite://", LOG_LEVEL="WARNING")
    app = create_app(settings)
    yield app
    app.state.db.dispose()


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def db(app):
    session = app.state.db.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def features(db):
    return FeatureService(db)


@pytest.fixture()
def modules(db):
    return ModuleService(db)


@pytest.fixture()
def plans(db):
    return PlanService(db)


@pytest.fixture()
def subscribe(db):
    """Insert a subscriber row the way the subscription flow would."""

    def _subscribe(plan_id: str, user_id: str, is_active: bool = True) -> None:
        db.add(PlanUserMapping(plan_id=plan_id, user_id=user_id, is_active=is_active))
        db.commit()

    return _subscribe
