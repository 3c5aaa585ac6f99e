"""API routes for downloading groups as CSV, ZIP and PNG."""

import typing
import uuid

import fastapi
import sqlmodel

from .. import database
from ..devices.middleware import get_device_id
from ..groups import services as group_services
from . import services

router = fastapi.APIRouter()


def _attachment(filename: str) -> dict[str, str]:
    return {'Content-Disposition': f'attachment; filename="{filename}"'}


def _group_dict(
    session: sqlmodel.Session, group_id: uuid.UUID, device_id: str
) -> dict[str, typing.Any]:
    group = group_services.get_group(session, str(group_id), device_id)
    return group_services.group_to_dict(session, group)


@router.get('/location-groups/{group_id}/export.csv')
async def export_group_csv(
    group_id: uuid.UUID,
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> fastapi.Response:
    """Download one group's titles as CSV."""
    group = _group_dict(session, group_id, device_id)
    return fastapi.Response(
        content=services.generate_csv(group),
        media_type='text/csv',
        headers=_attachment(services.csv_filename(group['name'])),
    )


@router.get('/export.zip')
async def export_groups_zip(
    group_ids: typing.Annotated[
        list[uuid.UUID] | None, fastapi.Query(alias='groupId')
    ] = None,
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> fastapi.Response:
    """Download a ZIP of CSVs for the chosen groups, or all of the device's groups."""
    if group_ids:
        groups = [_group_dict(session, group_id, device_id) for group_id in group_ids]
    else:
        groups = [
            group_services.group_to_dict(session, group)
            for group in group_services.get_groups(session, device_id)
        ]
    return fastapi.Response(
        content=services.build_zip(groups),
        media_type='application/zip',
        headers=_attachment(services.zip_filename()),
    )


@router.get('/location-groups/{group_id}/export.png')
async def export_marker_list_png(
    group_id: uuid.UUID,
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> fastapi.Response:
    """Render the group's numbered marker list as a PNG."""
    group = _group_dict(session, group_id, device_id)
    image = services.render_marker_list(group)
    return fastapi.Response(content=services.to_png(image), media_type='image/png')


@router.post('/location-groups/{group_id}/screenshot')
async def create_screenshot(
    group_id: uuid.UUID,
    map_file: typing.Annotated[fastapi.UploadFile, fastapi.File(alias='map')],
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
) -> fastapi.Response:
    """Combine an uploaded map capture with the group's marker list."""
    group = _group_dict(session, group_id, device_id)
    map_image = services.open_image(await map_file.read(services.MAX_MAP_UPLOAD_BYTES + 1))
    combined = services.combine_images(map_image, services.render_marker_list(group))
    return fastapi.Response(
        content=services.to_png(combined),
        media_type='image/png',
        headers=_attachment(services.screenshot_filename(group['name'])),
    )
