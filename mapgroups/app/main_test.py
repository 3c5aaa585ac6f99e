"""Unit tests for the location groups application wiring."""

import unittest
from collections.abc import Generator
from unittest.mock import patch

import fastapi.testclient
import sqlalchemy
import sqlalchemy.pool
import sqlmodel

from mapgroups.app import database, errors, main
from mapgroups.app.groups import services as group_services

DEVICE_A = 'a0000000-0000-4000-8000-000000000001'


def make_in_memory_engine() -> sqlalchemy.Engine:
    """Create an in-memory SQLite engine for testing."""
    engine = database.make_engine('sqlite://', poolclass=sqlalchemy.pool.StaticPool)
    database.create_db_and_tables(engine)
    return engine


class TestMainApp(unittest.TestCase):
    """Tests for health, routing and error translation."""

    def setUp(self) -> None:
        """Set up test client with in-memory database."""
        self.engine = make_in_memory_engine()

        def override_get_session() -> Generator[sqlmodel.Session, None, None]:
            """Yield an in-memory database session for testing."""
            with sqlmodel.Session(self.engine) as session:
                yield session

        overrides = main.app.dependency_overrides
        overrides[database.get_session] = override_get_session
        overrides[database.get_session_factory] = lambda: (
            lambda: sqlmodel.Session(self.engine)
        )
        self.client = fastapi.testclient.TestClient(
            main.app, cookies={'deviceId': DEVICE_A}, raise_server_exceptions=False
        )

    def tearDown(self) -> None:
        """Restore original dependency overrides."""
        main.app.dependency_overrides.clear()

    def test_health(self) -> None:
        """The health endpoint is mounted and sets no device cookie."""
        response = self.client.get('/health')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'status': 'healthy'})

    def test_unknown_route_uses_error_body(self) -> None:
        """Framework 404s use the same error shape as service errors."""
        response = self.client.get('/api/nope')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {'error': 'Not Found'})

    def test_persistence_error_is_500(self) -> None:
        """A storage failure surfaces as 500 with its message."""
        with patch.object(
            group_services,
            'create_group',
            side_effect=errors.PersistenceError('Failed to create location group'),
        ):
            response = self.client.post('/api/location-groups', json={'name': 'Trip'})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'error': 'Failed to create location group'})

    def test_unexpected_error_is_generic_500(self) -> None:
        """Unhandled exceptions are logged and hidden behind a generic body."""
        with (
            patch.object(group_services, 'get_groups', side_effect=RuntimeError('secret')),
            self.assertLogs(main.logger, level='ERROR'),
        ):
            response = self.client.get('/api/location-groups')

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'error': 'Internal server error'})
        self.assertNotIn('secret', response.text)

    def test_cors_preflight(self) -> None:
        """Configured origins may call the API with credentials."""
        response = self.client.options(
            '/api/location-groups',
            headers={
                'Origin': 'http://localhost:3000',
                'Access-Control-Request-Method': 'POST',
            },
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.headers['access-control-allow-origin'], 'http://localhost:3000'
        )
        self.assertEqual(response.headers['access-control-allow-credentials'], 'true')

    def test_lifespan_creates_tables(self) -> None:
        """Startup creates tables on the configured engine."""
        with patch.object(database, 'create_db_and_tables') as create:
            with fastapi.testclient.TestClient(main.app):
                pass
        create.assert_called_once_with()


if __name__ == '__main__':
    unittest.main()
