"""ORM Models — SQLAlchemy declarative models.

Invariants:
    - All models inherit from Base (db/base.py)
    - All models imported here so Base.metadata is complete for alembic and create_all
"""

from webtemplate.models.user import User  # noqa: F401
