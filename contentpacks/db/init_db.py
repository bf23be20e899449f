from contentpacks.db.session import engine
from contentpacks.db.base import Base
import contentpacks.db.models  # noqa: F401  (registers tables)


def init_db():
    """Create all tables directly (local SQLite / tests). Production uses alembic."""
    Base.metadata.create_all(bind=engine)
