"""Cookie-based device identification for API requests."""

import logging

import fastapi
import sqlalchemy.exc
import starlette.middleware.base
import starlette.types

import common.settings

from .. import database
from . import services

logger = logging.getLogger(__name__)


class DeviceIdMiddleware(starlette.middleware.base.BaseHTTPMiddleware):
    """Attach a persistent device id to every request under a path prefix.

    A request without a valid ``deviceId`` cookie is given a new id and the
    cookie is set on the response. The device row is upserted on each
    request; a failure to do so is logged and does not fail the request.
    """

    def __init__(self, app: starlette.types.ASGIApp, path_prefix: str = '/api/') -> None:
        super().__init__(app)
        self.path_prefix = path_prefix

    async def dispatch(
        self,
        request: fastapi.Request,
        call_next: starlette.middleware.base.RequestResponseEndpoint,
    ) -> fastapi.Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        cookie_value = request.cookies.get(common.settings.DEVICE_COOKIE_NAME)
        is_new = not services.is_valid_device_id(cookie_value)
        device_id = services.new_device_id() if is_new else str(cookie_value)
        if is_new and cookie_value:
            logger.warning('Replacing invalid device id cookie')

        self._register(request, device_id)
        request.state.device_id = device_id

        response = await call_next(request)
        if is_new:
            response.set_cookie(
                common.settings.DEVICE_COOKIE_NAME,
                device_id,
                max_age=common.settings.DEVICE_COOKIE_MAX_AGE,
                httponly=True,
                secure=common.settings.IS_PRODUCTION,
                samesite='lax',
            )
        return response

    def _register(self, request: fastapi.Request, device_id: str) -> None:
        # Honour test overrides of the session factory dependency.
        provider = request.app.dependency_overrides.get(
            database.get_session_factory, database.get_session_factory
        )
        session_factory: database.SessionFactory = provider()
        try:
            with session_factory() as session:
                services.register_device(session, device_id)
        except sqlalchemy.exc.SQLAlchemyError:
            logger.exception('Error registering device %s', device_id)


def get_device_id(request: fastapi.Request) -> str:
    """Return the device id attached by DeviceIdMiddleware."""
    device_id: str | None = getattr(request.state, 'device_id', None)
    if not device_id:
        raise fastapi.HTTPException(status_code=400, detail='Device ID not found')
    return device_id
