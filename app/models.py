from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from app.db import Base

UNKNOWN_ROCKET_NAME = "Unknown Rocket"
UNKNOWN_LAUNCH_PAD_NAME = "Unknown Launch Pad"


class RocketModel(Base):
    __tablename__ = 'rockets'
    id = Column(String, primary_key=True, index=True)
    name = Column(String)
    type = Column(String)
    active = Column(Boolean, nullable=False, default=False)
    country = Column(String)
    company = Column(String)

    # Set when the row stands in for a rocket the API could not return
    is_placeholder = Column(Boolean, nullable=False, default=False)
    fetched_at = Column(DateTime, default=datetime.utcnow)


class LaunchPadModel(Base):
    __tablename__ = 'launch_pads'
    id = Column(String, primary_key=True, index=True)
    name = Column(String)
    locality = Column(String)
    region = Column(String)
    latitude = Column(Float)
    longitude = Column(Float)

    is_placeholder = Column(Boolean, nullable=False, default=False)
    fetched_at = Column(DateTime, default=datetime.utcnow)


class PayloadModel(Base):
    __tablename__ = 'payloads'
    id = Column(String, primary_key=True, index=True)
    launch_id = Column(String, ForeignKey('launches.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String)
    type = Column(String)
    mass_kg = Column(Float)
    orbit = Column(String)
    customer = Column(String)


class LaunchModel(Base):
    __tablename__ = 'launches'
    id = Column(String, primary_key=True, index=True)
    name = Column(String)
    date_utc = Column(DateTime, index=True)  # naive UTC
    success = Column(Boolean, nullable=True, index=True)  # None = outcome unknown
    details = Column(Text)
    rocket_id = Column(String, ForeignKey('rockets.id'), nullable=True, index=True)
    launch_pad_id = Column(String, ForeignKey('launch_pads.id'), nullable=True, index=True)
    synced_at = Column(DateTime, default=datetime.utcnow)

    rocket = relationship("RocketModel", lazy="joined")
    launch_pad = relationship("LaunchPadModel", lazy="joined")
    payloads = relationship(
        "PayloadModel",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )


# Auth
user_roles = Table(
    'user_roles',
    Base.metadata,
    Column('user_id', Integer, ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    Column('role_id', Integer, ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
)


class RoleModel(Base):
    __tablename__ = 'roles'
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False, unique=True, index=True)


class UserModel(Base):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    roles = relationship("RoleModel", secondary=user_roles, lazy="selectin")

    @property
    def role_names(self):
        return sorted(role.name for role in self.roles)
