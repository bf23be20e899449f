from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from contentpacks.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)

    # Access tier synced from Stripe: FREE | PRO
    entitlement_level = Column(String(20), nullable=False, default="FREE")
    role = Column(String(50), nullable=False, default="user")  # user | admin | content_admin

    stripe_customer_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', entitlement_level='{self.entitlement_level}')>"
