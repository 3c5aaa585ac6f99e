"""Database models for devices, location groups and their locations."""

import datetime
import uuid

import sqlalchemy
import sqlmodel

DEFAULT_LOCATION_COLOR = '#3B82F6'


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def _new_id() -> str:
    return str(uuid.uuid4())


class Device(sqlmodel.SQLModel, table=True):
    """A browser instance identified by a long-lived cookie."""

    __tablename__ = 'devices'  # type: ignore[misc]

    device_id: str = sqlmodel.Field(primary_key=True, max_length=36)
    created_at: datetime.datetime = sqlmodel.Field(default_factory=_now)
    last_seen: datetime.datetime = sqlmodel.Field(default_factory=_now, index=True)

    groups: list['LocationGroup'] = sqlmodel.Relationship(
        back_populates='device',
        sa_relationship_kwargs={'cascade': 'all, delete-orphan', 'passive_deletes': True},
    )


class LocationGroup(sqlmodel.SQLModel, table=True):
    """A named, ordered collection of locations owned by one device."""

    __tablename__ = 'location_groups'  # type: ignore[misc]

    id: str = sqlmodel.Field(default_factory=_new_id, primary_key=True, max_length=36)
    device_id: str = sqlmodel.Field(
        foreign_key='devices.device_id', ondelete='CASCADE', index=True
    )
    name: str = sqlmodel.Field(max_length=100)
    created_at: datetime.datetime = sqlmodel.Field(default_factory=_now)
    updated_at: datetime.datetime = sqlmodel.Field(default_factory=_now)

    device: Device = sqlmodel.Relationship(back_populates='groups')
    locations: list['Location'] = sqlmodel.Relationship(
        back_populates='group',
        sa_relationship_kwargs={'cascade': 'all, delete-orphan', 'passive_deletes': True},
    )


class Location(sqlmodel.SQLModel, table=True):
    """A single geocoded marker within a group."""

    __tablename__ = 'locations'  # type: ignore[misc]
    __table_args__ = (sqlalchemy.Index('idx_locations_order', 'group_id', 'order_index'),)

    id: str = sqlmodel.Field(default_factory=_new_id, primary_key=True, max_length=36)
    group_id: str = sqlmodel.Field(
        foreign_key='location_groups.id', ondelete='CASCADE', index=True
    )
    lat: float
    lng: float
    title: str = sqlmodel.Field(max_length=200)
    color: str = sqlmodel.Field(default=DEFAULT_LOCATION_COLOR, max_length=7)
    order_index: int = sqlmodel.Field(default=0)
    created_at: datetime.datetime = sqlmodel.Field(default_factory=_now)

    group: LocationGroup = sqlmodel.Relationship(back_populates='locations')
