from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String

from edgaze.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)
    handle = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


class AdminRole(Base):
    __tablename__ = "admin_roles"

    user_id = Column(String(36), primary_key=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
