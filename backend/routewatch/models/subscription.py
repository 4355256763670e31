from uuid import UUID

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Uuid, text
from sqlalchemy.sql import func
from uuid6 import uuid7

from routewatch.core.database import Base


def new_subscription_id() -> UUID:
    return uuid7()


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Uuid, primary_key=True, default=new_subscription_id)
    user_id = Column(String, index=True, nullable=False)
    email = Column(String, nullable=False, default="")
    origin_id = Column(Integer, nullable=False)
    origin_code = Column(String, nullable=False, default="")
    destination_id = Column(Integer, nullable=False)
    destination_code = Column(String, nullable=False, default="")
    date_time = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    last_checked_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        # Only active rows take part in uniqueness; inactive history may repeat.
        Index(
            "unique_active_subscription",
            "user_id",
            "origin_id",
            "destination_id",
            "date_time",
            unique=True,
            postgresql_where=text("is_active = true"),
            sqlite_where=text("is_active = 1"),
        ),
    )
