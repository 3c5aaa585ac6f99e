"""Address geocoding behind a small interface, backed by Nominatim."""

import asyncio
import dataclasses
import enum
import functools
import logging
import typing

import geopy.exc  # pyright: ignore[reportMissingTypeStubs]
from geopy import geocoders  # pyright: ignore[reportMissingTypeStubs]

import common.settings

logger = logging.getLogger(__name__)


class FailureReason(enum.Enum):
    """Why an address could not be geocoded, with its human-readable text."""

    NOT_FOUND = 'Address not found'
    RATE_LIMITED = 'Rate limit exceeded'
    DENIED = 'Request denied'
    ERROR = 'Unexpected error'


@dataclasses.dataclass(frozen=True)
class GeocodeSuccess:
    lat: float
    lng: float
    formatted_address: str

    success: typing.ClassVar[bool] = True


@dataclasses.dataclass(frozen=True)
class GeocodeFailure:
    reason: FailureReason

    success: typing.ClassVar[bool] = False

    @property
    def message(self) -> str:
        return self.reason.value


GeocodeOutcome = GeocodeSuccess | GeocodeFailure


class Geocoder(typing.Protocol):
    """Anything that can turn a free-text address into coordinates."""

    async def geocode(self, address: str) -> GeocodeOutcome: ...


def failure_reason(exc: Exception) -> FailureReason:
    """Classify a geopy exception."""
    if isinstance(exc, geopy.exc.GeocoderQuotaExceeded):
        # GeocoderRateLimited is a subclass
        return FailureReason.RATE_LIMITED
    if isinstance(
        exc,
        geopy.exc.GeocoderInsufficientPrivileges | geopy.exc.GeocoderAuthenticationFailure,
    ):
        return FailureReason.DENIED
    return FailureReason.ERROR


class NominatimGeocoder:
    """Geocoder using OpenStreetMap Nominatim through geopy.

    geopy's Nominatim client is blocking, so each lookup runs in a worker
    thread to keep the event loop free.
    """

    def __init__(
        self,
        user_agent: str | None = None,
        timeout: float | None = None,
        geolocator: typing.Any = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else common.settings.GEOCODER_TIMEOUT
        self.geolocator = geolocator or geocoders.Nominatim(
            user_agent=user_agent or common.settings.GEOCODER_USER_AGENT
        )

    def _lookup(self, address: str) -> typing.Any:
        return self.geolocator.geocode(address, exactly_one=True, timeout=self.timeout)  # type: ignore[union-attr]

    async def geocode(self, address: str) -> GeocodeOutcome:
        """Geocode one address; failures are returned, never raised."""
        try:
            result = await asyncio.to_thread(self._lookup, address)
        except geopy.exc.GeopyError as exc:
            reason = failure_reason(exc)
            logger.warning('Geocoding %r failed: %s (%s)', address, reason.value, exc)
            return GeocodeFailure(reason)

        if not result:
            return GeocodeFailure(FailureReason.NOT_FOUND)
        return GeocodeSuccess(
            lat=float(result.latitude),
            lng=float(result.longitude),
            formatted_address=str(result.address),
        )


@functools.cache
def get_geocoder() -> Geocoder:
    """Get the shared geocoder instance."""
    return NominatimGeocoder()
