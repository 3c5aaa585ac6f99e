"""Services for device identification and maintenance."""

import datetime
import logging
import re
import uuid

import sqlalchemy
import sqlmodel

from ..models import Device, Location, LocationGroup

logger = logging.getLogger(__name__)

_UUID4_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$',
    re.IGNORECASE,
)


def new_device_id() -> str:
    """Generate a fresh device id."""
    return str(uuid.uuid4())


def is_valid_device_id(value: object) -> bool:
    """Return True if value is a UUID version 4 string."""
    return isinstance(value, str) and bool(_UUID4_PATTERN.match(value))


def register_device(session: sqlmodel.Session, device_id: str) -> Device:
    """Insert a device or refresh its last_seen timestamp."""
    now = datetime.datetime.now(datetime.UTC)
    device = session.get(Device, device_id)
    if device is None:
        device = Device(device_id=device_id, created_at=now, last_seen=now)
        logger.info('Registered new device %s', device_id)
    else:
        device.last_seen = now
    session.add(device)
    session.commit()
    session.refresh(device)
    return device


def cleanup_inactive_devices(session: sqlmodel.Session, days_inactive: int) -> int:
    """Delete devices unseen for days_inactive days that own no groups.

    Returns:
        Number of devices removed.
    """
    cutoff = datetime.datetime.now(datetime.UTC) - datetime.timedelta(days=days_inactive)
    owners = sqlmodel.select(LocationGroup.device_id).distinct()
    result = session.execute(
        sqlalchemy.delete(Device).where(
            Device.last_seen < cutoff,  # type: ignore[arg-type]
            Device.device_id.not_in(owners),  # type: ignore[attr-defined]
        )
    )
    session.commit()
    removed: int = result.rowcount  # type: ignore[attr-defined]
    logger.info('Cleaned up %d inactive devices', removed)
    return removed


def get_device_stats(session: sqlmodel.Session) -> dict[str, int]:
    """Return counts of devices, recently active devices, groups and locations."""
    now = datetime.datetime.now(datetime.UTC)

    def count(statement: sqlalchemy.Select[tuple[int]]) -> int:
        return session.execute(statement).scalar_one()

    return {
        'total_devices': count(sqlalchemy.select(sqlalchemy.func.count()).select_from(Device)),
        'active_24h': count(
            sqlalchemy.select(sqlalchemy.func.count())
            .select_from(Device)
            .where(Device.last_seen > now - datetime.timedelta(hours=24))  # type: ignore[arg-type]
        ),
        'active_7d': count(
            sqlalchemy.select(sqlalchemy.func.count())
            .select_from(Device)
            .where(Device.last_seen > now - datetime.timedelta(days=7))  # type: ignore[arg-type]
        ),
        'total_groups': count(
            sqlalchemy.select(sqlalchemy.func.count()).select_from(LocationGroup)
        ),
        'total_locations': count(
            sqlalchemy.select(sqlalchemy.func.count()).select_from(Location)
        ),
    }
