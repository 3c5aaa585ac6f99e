"""Unit tests for the client map view state."""

import unittest
from collections.abc import Generator
from unittest.mock import patch

import fastapi.testclient
import sqlalchemy
import sqlalchemy.pool
import sqlmodel

from mapgroups.app import database, main
from mapgroups.client import api, view_state

DEVICE_A = 'a0000000-0000-4000-8000-000000000001'


def make_in_memory_engine() -> sqlalchemy.Engine:
    """Create an in-memory SQLite engine for testing."""
    engine = database.make_engine('sqlite://', poolclass=sqlalchemy.pool.StaticPool)
    database.create_db_and_tables(engine)
    return engine


class _ViewStateTestBase(unittest.TestCase):
    """A view state talking to the in-process app."""

    def setUp(self) -> None:
        """Wire the app to an in-memory database."""
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
        self.client = api.LocationGroupsClient(
            http_client=fastapi.testclient.TestClient(main.app, cookies={'deviceId': DEVICE_A})
        )
        self.view = view_state.MapViewState(self.client)

    def tearDown(self) -> None:
        """Restore original dependency overrides."""
        main.app.dependency_overrides.clear()
        self.client.close()

    def _group(self, name: str, *titles: str) -> str:
        return self.client.create_group(
            name, [{'lat': float(i), 'lng': float(i), 'title': t} for i, t in enumerate(titles)]
        )['id']

    def _server_titles(self, group_id: str) -> list[str]:
        return [loc['title'] for loc in self.client.get_group(group_id)['locations']]

    def _titles(self) -> list[str]:
        return [marker.title for marker in self.view.markers]


class TestMarkers(_ViewStateTestBase):
    """Tests for loading, adding, removing and selecting markers."""

    def test_load_group(self) -> None:
        """Markers follow the server order."""
        group_id = self._group('Trip', 'A', 'B', 'C')
        self.view.load_group(group_id)
        self.assertEqual(self.view.current_group_id, group_id)
        self.assertEqual(self._titles(), ['A', 'B', 'C'])
        self.assertTrue(all(marker.group_id == group_id for marker in self.view.markers))

    def test_add_and_remove(self) -> None:
        """Adding appends; removing deletes on the server too."""
        group_id = self._group('Trip', 'A')
        self.view.load_group(group_id)

        marker = self.view.add_marker(5, 5, 'B', '#ef4444')
        self.assertEqual(self._titles(), ['A', 'B'])
        self.assertEqual(marker.color, '#ef4444')

        self.view.remove_marker(self.view.markers[0].location_id)
        self.assertEqual(self._titles(), ['B'])
        self.assertEqual(self._server_titles(group_id), ['B'])

    def test_select_and_recolor(self) -> None:
        """The selected marker is recolored locally and on the server."""
        group_id = self._group('Trip', 'A', 'B')
        self.view.load_group(group_id)
        target = self.view.markers[1]

        self.view.select_marker(target.location_id)
        self.view.recolor_selected('#8b5cf6')

        self.assertEqual(target.color, '#8b5cf6')
        colors = [loc['color'] for loc in self.client.get_group(group_id)['locations']]
        self.assertEqual(colors, ['#3B82F6', '#8b5cf6'])

    def test_recolor_without_selection(self) -> None:
        """Recoloring with nothing selected does nothing."""
        self.view.load_group(self._group('Trip', 'A'))
        self.assertIsNone(self.view.recolor_selected('#8b5cf6'))

    def test_select_unknown_marker(self) -> None:
        """Selecting a marker that is not shown fails."""
        self.view.load_group(self._group('Trip', 'A'))
        with self.assertRaises(KeyError):
            self.view.select_marker('missing')

    def test_removing_selected_clears_selection(self) -> None:
        """Removing the selected marker clears the selection."""
        self.view.load_group(self._group('Trip', 'A'))
        location_id = self.view.markers[0].location_id
        self.view.select_marker(location_id)
        self.view.remove_marker(location_id)
        self.assertIsNone(self.view.selected_marker_id)


class TestMoveMarker(_ViewStateTestBase):
    """Tests for drag-and-drop reordering."""

    def test_move_persists_order(self) -> None:
        """Moving the last marker to the front is stored on the server."""
        group_id = self._group('Trip', 'A', 'B', 'C')
        self.view.load_group(group_id)

        self.view.move_marker(2, 0)

        self.assertEqual(self._titles(), ['C', 'A', 'B'])
        self.assertEqual(self._server_titles(group_id), ['C', 'A', 'B'])

    def test_move_to_same_index_is_noop(self) -> None:
        """Moving in place sends nothing."""
        self.view.load_group(self._group('Trip', 'A', 'B'))
        with patch.object(self.client, 'reorder_locations') as reorder:
            self.view.move_marker(1, 1)
        reorder.assert_not_called()

    def test_failed_push_restores_order(self) -> None:
        """A rejected reorder puts the local order back and re-raises."""
        group_id = self._group('Trip', 'A', 'B', 'C')
        self.view.load_group(group_id)

        with (
            patch.object(
                self.client,
                'reorder_locations',
                side_effect=api.ApiError(500, 'Failed to reorder locations'),
            ),
            self.assertRaises(api.ApiError),
        ):
            self.view.move_marker(0, 2)

        self.assertEqual(self._titles(), ['A', 'B', 'C'])
        self.assertEqual(self._server_titles(group_id), ['A', 'B', 'C'])

    def test_out_of_range(self) -> None:
        """Indexes outside the list are rejected."""
        self.view.load_group(self._group('Trip', 'A'))
        with self.assertRaises(IndexError):
            self.view.move_marker(0, 3)


class TestTempGroups(_ViewStateTestBase):
    """Tests for the temporary group workflow."""

    def test_add_without_group_uses_temp_group(self) -> None:
        """Adding with no current group creates a temporary group."""
        self.view.add_marker(1, 1, 'Loose')

        self.assertIsNotNone(self.view.temp_group_id)
        self.assertEqual(self.view.current_group_id, self.view.temp_group_id)
        self.assertTrue(self.view.has_temp_addresses())
        self.assertEqual(self.view.temp_address_count(), 1)
        names = [group['name'] for group in self.client.list_groups()]
        self.assertEqual(len(names), 1)
        self.assertTrue(view_state.is_temp_group_name(names[0]))

    def test_ensure_temp_group_reuses(self) -> None:
        """The temporary group is created once."""
        first = self.view.ensure_temp_group()
        self.assertEqual(self.view.ensure_temp_group(), first)
        self.assertEqual(len(self.client.list_groups()), 1)

    def test_no_temp_addresses_initially(self) -> None:
        """A fresh view has no temporary addresses."""
        self.assertFalse(self.view.has_temp_addresses())
        self.assertEqual(self.view.temp_address_count(), 0)

    def test_save_into_new_group(self) -> None:
        """Saving copies markers into a new group and deletes the temp group."""
        self.view.add_marker(1, 1, 'A')
        self.view.add_marker(2, 2, 'B')

        target_id = self.view.save_temp_addresses(group_name='Saved')

        self.assertIsNone(self.view.temp_group_id)
        self.assertEqual(self.view.current_group_id, target_id)
        self.assertEqual(self._titles(), ['A', 'B'])
        groups = self.client.list_groups()
        self.assertEqual([group['name'] for group in groups], ['Saved'])

    def test_save_into_existing_group(self) -> None:
        """Saving into an existing group appends after its locations."""
        existing = self._group('Existing', 'X')
        self.view.add_marker(1, 1, 'A')

        self.view.save_temp_addresses(group_id=existing)

        self.assertEqual(self._server_titles(existing), ['X', 'A'])
        self.assertFalse(self.view.has_temp_addresses())

    def test_failed_save_into_existing_group_writes_nothing(self) -> None:
        """A rejected save leaves the target as it was, and a retry adds each address once."""
        existing = self._group('Existing', 'X')
        self.view.add_marker(1, 1, 'A')
        self.view.add_marker(2, 2, 'B')
        temp_id = self.view.temp_group_id

        with (
            patch.object(
                self.client,
                'update_group',
                side_effect=api.ApiError(500, 'Failed to update location group'),
            ),
            self.assertRaises(api.ApiError),
        ):
            self.view.save_temp_addresses(group_id=existing)

        self.assertEqual(self._server_titles(existing), ['X'])
        self.assertEqual(self.view.temp_group_id, temp_id)
        self.assertEqual(self.view.temp_address_count(), 2)

        self.view.save_temp_addresses(group_id=existing)

        self.assertEqual(self._server_titles(existing), ['X', 'A', 'B'])
        self.assertEqual([group['id'] for group in self.client.list_groups()], [existing])

    def test_failed_save_into_new_group_creates_nothing(self) -> None:
        """A rejected new-group save keeps only the temporary group."""
        self.view.add_marker(1, 1, 'A')
        temp_id = self.view.temp_group_id

        with (
            patch.object(
                self.client,
                'create_group',
                side_effect=api.ApiError(500, 'Failed to create location group'),
            ),
            self.assertRaises(api.ApiError),
        ):
            self.view.save_temp_addresses(group_name='Saved')

        self.assertEqual([group['id'] for group in self.client.list_groups()], [temp_id])
        self.assertTrue(self.view.has_temp_addresses())

    def test_save_requires_target(self) -> None:
        """Saving needs a name or an existing group."""
        self.view.add_marker(1, 1, 'A')
        with self.assertRaises(ValueError):
            self.view.save_temp_addresses(group_name='   ')
        self.assertTrue(self.view.has_temp_addresses())

    def test_discard(self) -> None:
        """Discarding deletes the temporary group and its markers."""
        self.view.add_marker(1, 1, 'A')

        self.view.discard_temp_addresses()

        self.assertIsNone(self.view.temp_group_id)
        self.assertIsNone(self.view.current_group_id)
        self.assertEqual(self.view.markers, [])
        self.assertEqual(self.client.list_groups(), [])

    def test_cleanup_removes_leftovers(self) -> None:
        """Cleanup deletes temporary groups from earlier sessions too."""
        self.client.create_group('__temp_1700000000000')
        keep = self._group('Real', 'A')
        self.view.ensure_temp_group()

        deleted = self.view.cleanup_temp_groups()

        self.assertEqual(deleted, 2)
        self.assertIsNone(self.view.temp_group_id)
        self.assertEqual([group['id'] for group in self.client.list_groups()], [keep])


if __name__ == '__main__':
    unittest.main()
