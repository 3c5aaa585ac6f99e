"""Persistence operations for location groups and their locations.

Every operation is scoped by the owning device id. A group that does not
exist and a group that belongs to another device are reported identically
with :class:`NotFoundError`, and ownership is re-checked inside each
operation rather than trusted from an earlier call.

Operations that touch more than one row run in a single transaction: a
failure at any step rolls back the whole operation.
"""

import collections.abc
import contextlib
import datetime
import logging
import re
from typing import Any, TypedDict

import sqlalchemy
import sqlalchemy.exc
import sqlmodel

from ..errors import (
    LocationGroupsError,
    NoValidUpdatesError,
    NotFoundError,
    PersistenceError,
    ValidationFailed,
)
from ..models import DEFAULT_LOCATION_COLOR, Location, LocationGroup

logger = logging.getLogger(__name__)

MAX_GROUP_NAME_LENGTH = 100
MAX_TITLE_LENGTH = 200
DEFAULT_GROUP_NAME = 'My Locations'
COLOR_PATTERN = re.compile(r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')


class LocationData(TypedDict, total=False):
    """A location as supplied by a caller, before it is stored."""

    lat: float
    lng: float
    title: str
    color: str | None


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


@contextlib.contextmanager
def _atomic(session: sqlmodel.Session, action: str) -> collections.abc.Iterator[None]:
    """Commit on success; roll back and translate storage errors on failure."""
    try:
        yield
        session.commit()
    except LocationGroupsError:
        session.rollback()
        raise
    except sqlalchemy.exc.SQLAlchemyError as exc:
        session.rollback()
        logger.exception('Failed to %s', action)
        raise PersistenceError(f'Failed to {action}') from exc


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_group_name(name: Any) -> str:
    """Return the trimmed group name or raise ValidationFailed."""
    if not isinstance(name, str) or not 1 <= len(name.strip()) <= MAX_GROUP_NAME_LENGTH:
        raise ValidationFailed(
            details=[
                {
                    'field': 'name',
                    'message': 'Group name must be between 1-100 characters',
                }
            ]
        )
    return name.strip()


def validate_location(data: LocationData, index: int | None = None) -> LocationData:
    """Check coordinates, title and color; return a normalised copy."""
    prefix = f'locations[{index}].' if index is not None else ''
    details: list[dict[str, Any]] = []

    lat = data.get('lat')
    lng = data.get('lng')
    title = data.get('title')
    clean_title = title.strip() if isinstance(title, str) else ''
    color = data.get('color')

    if not isinstance(lat, int | float) or not -90 <= lat <= 90:
        details.append(
            {'field': f'{prefix}lat', 'message': 'Latitude must be between -90 and 90'}
        )
    if not isinstance(lng, int | float) or not -180 <= lng <= 180:
        details.append(
            {
                'field': f'{prefix}lng',
                'message': 'Longitude must be between -180 and 180',
            }
        )
    if not 1 <= len(clean_title) <= MAX_TITLE_LENGTH:
        details.append(
            {
                'field': f'{prefix}title',
                'message': 'Title must be between 1-200 characters',
            }
        )
    if color is not None and not (isinstance(color, str) and COLOR_PATTERN.match(color)):
        details.append(
            {'field': f'{prefix}color', 'message': 'Color must be a valid hex color'}
        )
    if details:
        raise ValidationFailed(details=details)

    return {
        'lat': float(lat),  # type: ignore[arg-type]
        'lng': float(lng),  # type: ignore[arg-type]
        'title': clean_title,
        'color': color or DEFAULT_LOCATION_COLOR,
    }


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def get_locations(session: sqlmodel.Session, group_id: str) -> list[Location]:
    """Return a group's locations in display order."""
    return list(
        session.exec(
            sqlmodel.select(Location)
            .where(Location.group_id == group_id)
            .order_by(Location.order_index, Location.created_at)  # type: ignore[arg-type]
        ).all()
    )


def _owned_group(session: sqlmodel.Session, group_id: str, device_id: str) -> LocationGroup:
    group = session.exec(
        sqlmodel.select(LocationGroup).where(
            LocationGroup.id == group_id, LocationGroup.device_id == device_id
        )
    ).first()
    if group is None:
        raise NotFoundError('Location group not found')
    return group


def get_groups(session: sqlmodel.Session, device_id: str) -> list[LocationGroup]:
    """Return all groups owned by a device, most recently created first."""
    return list(
        session.exec(
            sqlmodel.select(LocationGroup)
            .where(LocationGroup.device_id == device_id)
            .order_by(LocationGroup.created_at.desc())  # type: ignore[attr-defined]
        ).all()
    )


def get_group(session: sqlmodel.Session, group_id: str, device_id: str) -> LocationGroup:
    """Return a group owned by the device, or raise NotFoundError."""
    return _owned_group(session, group_id, device_id)


# ---------------------------------------------------------------------------
# Group mutations
# ---------------------------------------------------------------------------


def _insert_locations(
    session: sqlmodel.Session, group_id: str, locations: list[LocationData]
) -> None:
    """Insert locations in array order with order_index 0..n-1."""
    now = _now()
    for index, data in enumerate(locations):
        session.add(
            Location(
                group_id=group_id,
                lat=data['lat'],
                lng=data['lng'],
                title=data['title'],
                color=data.get('color') or DEFAULT_LOCATION_COLOR,
                order_index=index,
                created_at=now,
            )
        )
    session.flush()


def create_group(
    session: sqlmodel.Session,
    device_id: str,
    name: str,
    initial_locations: list[LocationData] | None = None,
) -> LocationGroup:
    """Create a group and its initial locations as one atomic unit."""
    name = validate_group_name(name)
    locations = [
        validate_location(data, index)
        for index, data in enumerate(initial_locations or [])
    ]

    group = LocationGroup(device_id=device_id, name=name)
    with _atomic(session, 'create location group'):
        session.add(group)
        session.flush()
        _insert_locations(session, group.id, locations)

    session.refresh(group)
    logger.info(
        'Created group %s with %d locations for device %s',
        group.id,
        len(locations),
        device_id,
    )
    return group


def update_group(
    session: sqlmodel.Session,
    group_id: str,
    device_id: str,
    name: str | None = None,
    locations: list[LocationData] | None = None,
) -> LocationGroup:
    """Rename a group and/or replace all of its locations atomically."""
    if name is not None:
        name = validate_group_name(name)
    replacements = (
        [validate_location(data, index) for index, data in enumerate(locations)]
        if locations is not None
        else None
    )

    with _atomic(session, 'update location group'):
        group = _owned_group(session, group_id, device_id)
        if name is not None:
            group.name = name
        if replacements is not None:
            session.execute(
                sqlalchemy.delete(Location).where(Location.group_id == group_id)  # type: ignore[arg-type]
            )
            _insert_locations(session, group_id, replacements)
        group.updated_at = _now()
        session.add(group)

    session.refresh(group)
    return group


def delete_group(session: sqlmodel.Session, group_id: str, device_id: str) -> None:
    """Delete a group and all of its locations in one transaction."""
    with _atomic(session, 'delete location group'):
        _owned_group(session, group_id, device_id)
        session.execute(
            sqlalchemy.delete(Location).where(Location.group_id == group_id)  # type: ignore[arg-type]
        )
        session.execute(
            sqlalchemy.delete(LocationGroup).where(
                LocationGroup.id == group_id,  # type: ignore[arg-type]
                LocationGroup.device_id == device_id,  # type: ignore[arg-type]
            )
        )
    logger.info('Deleted group %s for device %s', group_id, device_id)


def ensure_default_group(session: sqlmodel.Session, device_id: str) -> LocationGroup | None:
    """Create the default group for a device that owns none.

    Returns None when the device already owns at least one group.
    """
    if get_groups(session, device_id):
        return None
    return create_group(session, device_id, DEFAULT_GROUP_NAME)


# ---------------------------------------------------------------------------
# Location mutations
# ---------------------------------------------------------------------------


def add_location(
    session: sqlmodel.Session,
    group_id: str,
    device_id: str,
    lat: float,
    lng: float,
    title: str,
    color: str | None = None,
) -> Location:
    """Append a location to the end of a group."""
    data = validate_location({'lat': lat, 'lng': lng, 'title': title, 'color': color})

    with _atomic(session, 'add location'):
        group = _owned_group(session, group_id, device_id)
        max_order = session.exec(
            sqlmodel.select(sqlalchemy.func.max(Location.order_index)).where(
                Location.group_id == group_id
            )
        ).one()
        location = Location(
            group_id=group_id,
            lat=data['lat'],
            lng=data['lng'],
            title=data['title'],
            color=data.get('color') or DEFAULT_LOCATION_COLOR,
            order_index=(max_order + 1) if max_order is not None else 0,
        )
        session.add(location)
        group.updated_at = _now()
        session.add(group)

    session.refresh(location)
    return location


def reorder_locations(
    session: sqlmodel.Session,
    group_id: str,
    device_id: str,
    location_ids: list[str],
) -> list[Location]:
    """Assign order_index by position in location_ids.

    All or nothing: if any id is not a location of this group, no index is
    changed and NotFoundError is raised.

    Returns:
        The group's locations in their new order.
    """
    with _atomic(session, 'reorder locations'):
        group = _owned_group(session, group_id, device_id)
        by_id = {location.id: location for location in get_locations(session, group_id)}
        for index, location_id in enumerate(location_ids):
            location = by_id.get(location_id)
            if location is None:
                raise NotFoundError('Location not found in group')
            location.order_index = index
            session.add(location)
        group.updated_at = _now()
        session.add(group)

    return get_locations(session, group_id)


def delete_location(
    session: sqlmodel.Session, group_id: str, location_id: str, device_id: str
) -> None:
    """Delete one location from a group owned by the device."""
    with _atomic(session, 'delete location'):
        group = _owned_group(session, group_id, device_id)
        result = session.execute(
            sqlalchemy.delete(Location).where(
                Location.id == location_id,  # type: ignore[arg-type]
                Location.group_id == group_id,  # type: ignore[arg-type]
            )
        )
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise NotFoundError('Location not found')
        group.updated_at = _now()
        session.add(group)


def update_location(
    session: sqlmodel.Session,
    group_id: str,
    location_id: str,
    device_id: str,
    color: str | None = None,
) -> Location:
    """Change a location's color, the only field mutable after creation."""
    with _atomic(session, 'update location'):
        group = _owned_group(session, group_id, device_id)
        if color is None:
            raise NoValidUpdatesError()
        if not COLOR_PATTERN.match(color):
            raise ValidationFailed(
                details=[{'field': 'color', 'message': 'Color must be a valid hex color'}]
            )
        location = session.exec(
            sqlmodel.select(Location).where(
                Location.id == location_id, Location.group_id == group_id
            )
        ).first()
        if location is None:
            raise NotFoundError('Location not found')
        location.color = color
        session.add(location)
        group.updated_at = _now()
        session.add(group)

    session.refresh(location)
    return location


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def location_to_dict(location: Location) -> dict[str, Any]:
    """Serialize a location to its wire form."""
    return {
        'id': location.id,
        'lat': location.lat,
        'lng': location.lng,
        'title': location.title,
        'color': location.color,
        'orderIndex': location.order_index,
    }


def group_to_dict(session: sqlmodel.Session, group: LocationGroup) -> dict[str, Any]:
    """Serialize a group with its full ordered locations array."""
    return {
        'id': group.id,
        'name': group.name,
        'locations': [location_to_dict(loc) for loc in get_locations(session, group.id)],
        'createdAt': group.created_at.isoformat(),
        'updatedAt': group.updated_at.isoformat(),
    }
