from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Models register themselves on import; see contentpacks.db.models
