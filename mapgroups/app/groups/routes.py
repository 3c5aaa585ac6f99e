"""API routes for location groups and their locations."""

import typing
import uuid

import fastapi
import pydantic
import sqlmodel

from .. import database
from ..devices.middleware import get_device_id
from . import services

router = fastapi.APIRouter(prefix='/location-groups')

GroupName = typing.Annotated[
    str, pydantic.StringConstraints(strip_whitespace=True, min_length=1, max_length=100)
]
Title = typing.Annotated[
    str, pydantic.StringConstraints(strip_whitespace=True, min_length=1, max_length=200)
]
Color = typing.Annotated[str, pydantic.StringConstraints(pattern=services.COLOR_PATTERN.pattern)]
Latitude = typing.Annotated[float, pydantic.Field(ge=-90, le=90)]
Longitude = typing.Annotated[float, pydantic.Field(ge=-180, le=180)]


class LocationCreate(pydantic.BaseModel):
    """Request body for a single location."""

    lat: Latitude
    lng: Longitude
    title: Title
    color: Color | None = None


class GroupCreate(pydantic.BaseModel):
    """Request body for creating a group."""

    name: GroupName
    locations: list[LocationCreate] = []


class GroupUpdate(pydantic.BaseModel):
    """Request body for renaming a group and/or replacing its locations."""

    name: GroupName | None = None
    locations: list[LocationCreate] | None = None


class LocationUpdate(pydantic.BaseModel):
    """Request body for updating a location. Only color is mutable."""

    color: Color | None = None


class LocationReorder(pydantic.BaseModel):
    """Request body for reordering a group's locations."""

    location_ids: list[str] = pydantic.Field(alias='locationIds', max_length=1000)


def _location_data(locations: list[LocationCreate]) -> list[services.LocationData]:
    return [
        typing.cast(services.LocationData, loc.model_dump(exclude_none=True))
        for loc in locations
    ]


@router.get('')
async def list_groups(
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> list[dict[str, typing.Any]]:
    """List the device's groups with their locations."""
    return [
        services.group_to_dict(session, group)
        for group in services.get_groups(session, device_id)
    ]


@router.get('/{group_id}')
async def get_group(
    group_id: uuid.UUID,
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> dict[str, typing.Any]:
    """Get one group with its locations."""
    group = services.get_group(session, str(group_id), device_id)
    return services.group_to_dict(session, group)


@router.post('', status_code=201)
async def create_group(
    group_data: GroupCreate,
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> dict[str, typing.Any]:
    """Create a group, optionally with initial locations."""
    group = services.create_group(
        session, device_id, group_data.name, _location_data(group_data.locations)
    )
    return services.group_to_dict(session, group)


@router.put('/{group_id}')
async def update_group(
    group_id: uuid.UUID,
    group_data: GroupUpdate,
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> dict[str, typing.Any]:
    """Rename a group and/or replace all of its locations."""
    group = services.update_group(
        session,
        str(group_id),
        device_id,
        name=group_data.name,
        locations=(
            _location_data(group_data.locations)
            if group_data.locations is not None
            else None
        ),
    )
    return services.group_to_dict(session, group)


@router.delete('/{group_id}', status_code=204)
async def delete_group(
    group_id: uuid.UUID,
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> fastapi.Response:
    """Delete a group and all of its locations."""
    services.delete_group(session, str(group_id), device_id)
    return fastapi.Response(status_code=204)


@router.post('/{group_id}/locations', status_code=201)
async def add_location(
    group_id: uuid.UUID,
    location_data: LocationCreate,
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> dict[str, typing.Any]:
    """Append a location to a group."""
    location = services.add_location(
        session,
        str(group_id),
        device_id,
        location_data.lat,
        location_data.lng,
        location_data.title,
        location_data.color,
    )
    return services.location_to_dict(location)


# Declared before /{location_id} so 'reorder' is not parsed as an id.
@router.put('/{group_id}/locations/reorder')
async def reorder_locations(
    group_id: uuid.UUID,
    reorder_data: LocationReorder,
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> dict[str, typing.Any]:
    """Reorder a group's locations to match the submitted id list."""
    locations = services.reorder_locations(
        session, str(group_id), device_id, reorder_data.location_ids
    )
    return {
        'success': True,
        'locations': [services.location_to_dict(loc) for loc in locations],
    }


@router.put('/{group_id}/locations/{location_id}')
async def update_location(
    group_id: uuid.UUID,
    location_id: uuid.UUID,
    location_data: LocationUpdate,
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> dict[str, typing.Any]:
    """Change a location's color."""
    location = services.update_location(
        session, str(group_id), str(location_id), device_id, color=location_data.color
    )
    return services.location_to_dict(location)


@router.delete('/{group_id}/locations/{location_id}', status_code=204)
async def delete_location(
    group_id: uuid.UUID,
    location_id: uuid.UUID,
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> fastapi.Response:
    """Delete one location from a group."""
    services.delete_location(session, str(group_id), str(location_id), device_id)
    return fastapi.Response(status_code=204)
