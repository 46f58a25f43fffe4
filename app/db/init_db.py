from app.db.session import engine
from app.db.base import Base
from app.db import models  # noqa: F401  registers tables on Base.metadata


def init_db():
    """Create all tables without Alembic (local development only)."""
    Base.metadata.create_all(bind=engine)


if __name__ == "__main__":
    init_db()
