"""Domain modules live here. Each module may define:

- models.py     (SQLAlchemy models using admin_service.core.database.Base)
- schemas.py    (Pydantic models)
- repository.py (data access)
- service.py    (business logic)
- router.py     (FastAPI APIRouter exported as `router`)

Routers are auto-discovered and included; models are imported before the
schema is created.
"""
