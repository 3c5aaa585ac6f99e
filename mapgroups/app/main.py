"""Location groups application: device-scoped groups of map markers."""

import contextlib
import logging
from collections.abc import AsyncGenerator

import fastapi
import fastapi.exceptions
import fastapi.middleware.cors
import fastapi.responses
import starlette.exceptions
import uvicorn

import common.app
import common.settings

from . import database
from .bulk import routes as bulk_routes
from .devices.middleware import DeviceIdMiddleware
from .errors import LocationGroupsError
from .export import routes as export_routes
from .groups import routes as groups_routes

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: fastapi.FastAPI) -> AsyncGenerator[None, None]:
    """Initialize the database on startup."""
    database.create_db_and_tables()
    logger.info('Database initialized at %s', common.settings.DATABASE_URL)
    yield


app = common.app.create_app('Location Groups', lifespan=lifespan)

app.add_middleware(DeviceIdMiddleware, path_prefix='/api/')
app.add_middleware(
    fastapi.middleware.cors.CORSMiddleware,
    allow_origins=common.settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.exception_handler(LocationGroupsError)
async def location_groups_error_handler(
    request: fastapi.Request, exc: LocationGroupsError
) -> fastapi.responses.JSONResponse:
    """Translate service errors to their HTTP status and JSON body."""
    return fastapi.responses.JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(fastapi.exceptions.RequestValidationError)
async def request_validation_error_handler(
    request: fastapi.Request, exc: fastapi.exceptions.RequestValidationError
) -> fastapi.responses.JSONResponse:
    """Report malformed requests as 400 with field-level details."""
    details = [
        {
            'field': '.'.join(str(part) for part in error['loc'][1:]) or str(error['loc'][0]),
            'location': error['loc'][0],
            'message': error['msg'],
        }
        for error in exc.errors()
    ]
    return fastapi.responses.JSONResponse(
        status_code=400, content={'error': 'Validation failed', 'details': details}
    )


@app.exception_handler(starlette.exceptions.HTTPException)
async def http_exception_handler(
    request: fastapi.Request, exc: starlette.exceptions.HTTPException
) -> fastapi.responses.Response:
    """Use the {'error': ...} body for framework-raised HTTP errors too."""
    return fastapi.responses.JSONResponse(
        status_code=exc.status_code, content={'error': exc.detail}, headers=exc.headers
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(
    request: fastapi.Request, exc: Exception
) -> fastapi.responses.JSONResponse:
    """Log unexpected failures and return a generic 500."""
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    return fastapi.responses.JSONResponse(
        status_code=500, content={'error': 'Internal server error'}
    )


app.include_router(groups_routes.router, prefix='/api')
app.include_router(bulk_routes.router, prefix='/api')
app.include_router(export_routes.router, prefix='/api')


if __name__ == '__main__':
    uvicorn.run(app, host='0.0.0.0', port=8000)
