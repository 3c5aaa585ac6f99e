"""Sequential geocode-and-save pipeline behind bulk address import."""

import asyncio
import collections.abc
import dataclasses
import logging
import threading
from typing import Any

import sqlalchemy.exc

from ..database import SessionFactory
from ..errors import LocationGroupsError
from ..groups import services as group_services
from .geocoding import GeocodeFailure, Geocoder, FailureReason

logger = logging.getLogger(__name__)

BULK_COLORS = (
    '#ef4444',
    '#3b82f6',
    '#10b981',
    '#f59e0b',
    '#8b5cf6',
    '#ec4899',
    '#6366f1',
    '#f97316',
    '#14b8a6',
    '#6b7280',
)

SAVE_FAILED_REASON = 'Failed to save to database'

ProgressCallback = collections.abc.Callable[[int, int, str, str], None]
Sleep = collections.abc.Callable[[float], collections.abc.Awaitable[Any]]


def _no_progress(index: int, total: int, address: str, status: str) -> None:
    pass


@dataclasses.dataclass
class BulkImportResult:
    successful: list[dict[str, Any]] = dataclasses.field(default_factory=list)
    failed: list[dict[str, str]] = dataclasses.field(default_factory=list)
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            'successful': self.successful,
            'failed': self.failed,
            'cancelled': self.cancelled,
        }


class BulkImporter:
    """Geocode addresses one at a time and append each hit to a group.

    Failures never stop the batch: each address ends up in exactly one of
    the successful or failed lists. Only the cancel event ends a run early,
    and it is checked between items, so in-flight work always completes.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        session_factory: SessionFactory,
        delay: float = 0.5,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.geocoder = geocoder
        self.session_factory = session_factory
        self.delay = delay
        self.sleep = sleep

    def _save(
        self, group_id: str, device_id: str, lat: float, lng: float, title: str, color: str
    ) -> dict[str, Any]:
        with self.session_factory() as session:
            location = group_services.add_location(
                session, group_id, device_id, lat=lat, lng=lng, title=title, color=color
            )
            return group_services.location_to_dict(location)

    async def run(
        self,
        group_id: str,
        device_id: str,
        addresses: list[str],
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback = _no_progress,
    ) -> BulkImportResult:
        """Import addresses into a group, in order.

        Args:
            group_id: Target group, which must belong to device_id.
            device_id: Owning device.
            addresses: Parsed addresses; see parsing.parse_addresses.
            cancel_event: Set to stop before the next address.
            progress: Called with (index, total, address, status) before
                each address and once more on completion.

        Returns:
            Per-address outcomes and whether the run was cancelled.
        """
        result = BulkImportResult()
        total = len(addresses)
        successes = 0

        for index, address in enumerate(addresses):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                logger.info('Bulk import into %s cancelled at %d/%d', group_id, index, total)
                break

            progress(index, total, address, f'Processing address {index + 1} of {total}...')

            try:
                outcome = await self.geocoder.geocode(address)
            except Exception:
                logger.exception('Geocoder raised for %r', address)
                outcome = GeocodeFailure(FailureReason.ERROR)

            if isinstance(outcome, GeocodeFailure):
                result.failed.append({'address': address, 'reason': outcome.message})
            else:
                color = BULK_COLORS[successes % len(BULK_COLORS)]
                title = (outcome.formatted_address or address)[: group_services.MAX_TITLE_LENGTH]
                try:
                    saved = await asyncio.to_thread(
                        self._save, group_id, device_id, outcome.lat, outcome.lng, title, color
                    )
                except (LocationGroupsError, sqlalchemy.exc.SQLAlchemyError) as exc:
                    logger.warning('Saving %r to group %s failed: %s', address, group_id, exc)
                    result.failed.append({'address': address, 'reason': SAVE_FAILED_REASON})
                else:
                    successes += 1
                    result.successful.append({'address': address, 'result': saved})

            if index < total - 1:
                await self.sleep(self.delay)

        if not result.cancelled:
            progress(total, total, 'Completed!', 'Upload complete')

        logger.info(
            'Bulk import into %s: %d succeeded, %d failed',
            group_id,
            len(result.successful),
            len(result.failed),
        )
        return result
