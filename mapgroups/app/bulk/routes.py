"""API routes for bulk address import and single-address geocoding."""

import typing
import uuid

import fastapi
import fastapi.responses
import pydantic
import sqlmodel

import common.settings

from .. import database
from ..devices.middleware import get_device_id
from ..errors import ValidationFailed
from ..groups import services as group_services
from . import parsing
from .geocoding import GeocodeFailure, Geocoder, get_geocoder
from .jobs import BulkImportJobs, get_jobs
from .pipeline import BulkImporter

router = fastapi.APIRouter()

NO_TARGET_GROUP = 'Please select a location group or enter a new group name'


class BulkImportCreate(pydantic.BaseModel):
    """Request body for starting a bulk import."""

    model_config = pydantic.ConfigDict(populate_by_name=True)

    text: str
    group_id: uuid.UUID | None = pydantic.Field(default=None, alias='groupId')
    group_name: str | None = pydantic.Field(default=None, alias='groupName')


class BulkImportPreview(pydantic.BaseModel):
    """Request body for previewing how pasted text will be parsed."""

    text: str


def get_importer(
    geocoder: Geocoder = fastapi.Depends(get_geocoder),
    session_factory: database.SessionFactory = fastapi.Depends(database.get_session_factory),
) -> BulkImporter:
    """Build an importer paced by the configured delay."""
    return BulkImporter(
        geocoder, session_factory, delay=common.settings.BULK_IMPORT_DELAY_SECONDS
    )


def _target_group_id(
    session: sqlmodel.Session, device_id: str, request: BulkImportCreate
) -> str:
    """Resolve where imported locations go, creating a group if needed."""
    if request.group_name and request.group_name.strip():
        return group_services.create_group(session, device_id, request.group_name).id
    if request.group_id is not None:
        return group_services.get_group(session, str(request.group_id), device_id).id
    default_group = group_services.ensure_default_group(session, device_id)
    if default_group is None:
        raise ValidationFailed(NO_TARGET_GROUP)
    return default_group.id


@router.post('/bulk-imports/preview')
async def preview_bulk_import(request: BulkImportPreview) -> dict[str, typing.Any]:
    """Show the addresses that would be imported and the live count label."""
    addresses = parsing.parse_addresses(request.text)
    return {
        'addresses': addresses,
        'count': len(addresses),
        'countLabel': parsing.count_label(request.text),
    }


@router.post('/bulk-imports', status_code=202)
async def start_bulk_import(
    request: BulkImportCreate,
    background_tasks: fastapi.BackgroundTasks,
    device_id: str = fastapi.Depends(get_device_id),
    session: sqlmodel.Session = fastapi.Depends(database.get_session),
    importer: BulkImporter = fastapi.Depends(get_importer),
    jobs: BulkImportJobs = fastapi.Depends(get_jobs),
) -> dict[str, typing.Any]:
    """Start geocoding pasted addresses into a group in the background."""
    addresses = parsing.parse_addresses(request.text)
    if not addresses:
        raise ValidationFailed(
            details=[{'field': 'text', 'message': 'Please enter at least one address'}]
        )

    group_id = _target_group_id(session, device_id, request)

    jobs.discard_finished(device_id)
    job = jobs.create(device_id, group_id, addresses)
    background_tasks.add_task(jobs.run, job, importer)
    return {
        'jobId': job.job_id,
        'groupId': group_id,
        'total': job.total,
        'addresses': addresses,
    }


@router.get('/bulk-imports/{job_id}')
async def get_bulk_import(
    job_id: str,
    device_id: str = fastapi.Depends(get_device_id),
    jobs: BulkImportJobs = fastapi.Depends(get_jobs),
) -> dict[str, typing.Any]:
    """Report a job's progress, and its result once finished."""
    return jobs.get(job_id, device_id).to_dict()


@router.delete('/bulk-imports/{job_id}', status_code=204)
async def cancel_bulk_import(
    job_id: str,
    device_id: str = fastapi.Depends(get_device_id),
    jobs: BulkImportJobs = fastapi.Depends(get_jobs),
) -> fastapi.Response:
    """Stop a job before its next address; saved locations are kept."""
    jobs.cancel(job_id, device_id)
    return fastapi.Response(status_code=204)


@router.get('/bulk-imports/{job_id}/failed.txt')
async def get_failed_addresses(
    job_id: str,
    device_id: str = fastapi.Depends(get_device_id),
    jobs: BulkImportJobs = fastapi.Depends(get_jobs),
) -> fastapi.responses.PlainTextResponse:
    """Failed addresses, one per line, for copying back into the import box."""
    job = jobs.get(job_id, device_id)
    return fastapi.responses.PlainTextResponse('\n'.join(job.failed_addresses))


@router.get('/geocode')
async def geocode_address(
    q: typing.Annotated[str, fastapi.Query(min_length=1, max_length=200)],
    geocoder: Geocoder = fastapi.Depends(get_geocoder),
) -> dict[str, typing.Any]:
    """Geocode one address for search-and-add."""
    outcome = await geocoder.geocode(q.strip())
    if isinstance(outcome, GeocodeFailure):
        return {'success': False, 'reason': outcome.message}
    return {
        'success': True,
        'lat': outcome.lat,
        'lng': outcome.lng,
        'formattedAddress': outcome.formatted_address,
    }
