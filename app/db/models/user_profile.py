from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from app.db.base import Base


class UserProfile(Base):
    __tablename__ = "user_profiles"

    user_id = Column(String, primary_key=True)  # identity provider "sub"
    email = Column(String, nullable=True)

    stripe_customer_id = Column(String, nullable=True, unique=True, index=True)
    # Mirrored from the latest subscription for display only
    stripe_price_id = Column(String, nullable=True)
    stripe_product_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
