"""Client-side map view state: ordered markers, selection and temporary groups.

The server owns the canonical order of a group's locations. This view
applies a move locally first, then pushes the complete id order; if the
push fails the local order is put back so the view never disagrees with
what is stored.
"""

import dataclasses
import logging
import time
from typing import Any

from .api import ApiError, LocationGroupsClient

logger = logging.getLogger(__name__)

TEMP_GROUP_PREFIX = '__temp_'


@dataclasses.dataclass
class Marker:
    location_id: str
    lat: float
    lng: float
    title: str
    color: str
    group_id: str

    @classmethod
    def from_location(cls, location: dict[str, Any], group_id: str) -> 'Marker':
        return cls(
            location_id=location['id'],
            lat=location['lat'],
            lng=location['lng'],
            title=location['title'],
            color=location['color'],
            group_id=group_id,
        )

    def to_location_payload(self) -> dict[str, Any]:
        """Body for creating this marker's location in another group."""
        return {'lat': self.lat, 'lng': self.lng, 'title': self.title, 'color': self.color}


def is_temp_group_name(name: str) -> bool:
    return name.startswith(TEMP_GROUP_PREFIX)


class MapViewState:
    """Markers shown on the map for the current group, in display order."""

    def __init__(self, client: LocationGroupsClient) -> None:
        self.client = client
        self.current_group_id: str | None = None
        self.markers: list[Marker] = []
        self.temp_group_id: str | None = None
        self.selected_marker_id: str | None = None
        self._created_temp_groups: list[str] = []

    @property
    def selected_marker(self) -> Marker | None:
        for marker in self.markers:
            if marker.location_id == self.selected_marker_id:
                return marker
        return None

    def load_group(self, group_id: str) -> None:
        """Show a group's markers in server order."""
        group = self.client.get_group(group_id)
        self.current_group_id = group_id
        self.markers = [Marker.from_location(loc, group_id) for loc in group['locations']]
        self.selected_marker_id = None

    def add_marker(
        self, lat: float, lng: float, title: str, color: str | None = None
    ) -> Marker:
        """Add a marker to the current group, or to a temporary group if none is open."""
        if self.current_group_id is None:
            self.current_group_id = self.ensure_temp_group()
        location = self.client.add_location(self.current_group_id, lat, lng, title, color)
        marker = Marker.from_location(location, self.current_group_id)
        self.markers.append(marker)
        return marker

    def remove_marker(self, location_id: str) -> None:
        marker = self._marker(location_id)
        self.client.delete_location(marker.group_id, location_id)
        self.markers.remove(marker)
        if self.selected_marker_id == location_id:
            self.selected_marker_id = None

    def select_marker(self, location_id: str | None) -> None:
        """Select a marker by id; None clears the selection."""
        if location_id is not None:
            self._marker(location_id)
        self.selected_marker_id = location_id

    def recolor_selected(self, color: str) -> Marker | None:
        """Change the selected marker's color; does nothing without a selection."""
        marker = self.selected_marker
        if marker is None:
            return None
        location = self.client.update_location(marker.group_id, marker.location_id, color)
        marker.color = location['color']
        return marker

    def move_marker(self, from_index: int, to_index: int) -> None:
        """Move one marker and persist the resulting order.

        Raises:
            IndexError: If either index is out of range.
            ApiError: If the server rejects the new order. The local order
                is restored before the error propagates.
        """
        if not (0 <= from_index < len(self.markers) and 0 <= to_index < len(self.markers)):
            raise IndexError('Marker index out of range')
        if from_index == to_index:
            return

        previous = list(self.markers)
        moved = self.markers.pop(from_index)
        self.markers.insert(to_index, moved)

        if self.current_group_id is None:
            return
        try:
            self.client.reorder_locations(
                self.current_group_id, [marker.location_id for marker in self.markers]
            )
        except ApiError:
            logger.warning('Reorder of group %s failed; restoring order', self.current_group_id)
            self.markers = previous
            raise

    # Temporary groups

    def ensure_temp_group(self) -> str:
        """Create the temporary group on first use and return its id."""
        if self.temp_group_id is None:
            name = f'{TEMP_GROUP_PREFIX}{int(time.time() * 1000)}'
            group = self.client.create_group(name)
            self.temp_group_id = group['id']
            self._created_temp_groups.append(group['id'])
        return self.temp_group_id

    def _temp_markers(self) -> list[Marker]:
        if self.temp_group_id is None:
            return []
        return [marker for marker in self.markers if marker.group_id == self.temp_group_id]

    def has_temp_addresses(self) -> bool:
        return bool(self._temp_markers())

    def temp_address_count(self) -> int:
        return len(self._temp_markers())

    def save_temp_addresses(
        self, group_name: str | None = None, group_id: str | None = None
    ) -> str:
        """Copy the temporary markers into a named new group or an existing one.

        The target group is written in a single request, so a failure leaves
        it untouched and the temporary group in place for a retry. The
        temporary group is deleted afterwards and the target group becomes
        the current group.

        Returns:
            The target group id.
        """
        copies = [marker.to_location_payload() for marker in self._temp_markers()]
        if group_name and group_name.strip():
            target_id = self.client.create_group(group_name.strip(), copies)['id']
        elif group_id:
            existing = self.client.get_group(group_id)['locations']
            self.client.update_group(
                group_id,
                locations=[
                    Marker.from_location(loc, group_id).to_location_payload() for loc in existing
                ]
                + copies,
            )
            target_id = group_id
        else:
            raise ValueError('Please enter a group name or select an existing group.')

        self._delete_temp_group()
        self.load_group(target_id)
        return target_id

    def discard_temp_addresses(self) -> None:
        """Delete the temporary group and forget its markers."""
        if self.temp_group_id is None:
            return
        temp_id = self.temp_group_id
        self._delete_temp_group()
        self.markers = [marker for marker in self.markers if marker.group_id != temp_id]
        if self.current_group_id == temp_id:
            self.current_group_id = None
        self.selected_marker_id = None

    def _delete_temp_group(self) -> None:
        if self.temp_group_id is None:
            return
        self.client.delete_group(self.temp_group_id)
        if self.temp_group_id in self._created_temp_groups:
            self._created_temp_groups.remove(self.temp_group_id)
        self.temp_group_id = None

    def cleanup_temp_groups(self) -> int:
        """Delete leftover temporary groups, including ones from earlier sessions.

        Returns:
            Number of groups deleted.
        """
        stale = set(self._created_temp_groups)
        stale.update(
            group['id'] for group in self.client.list_groups() if is_temp_group_name(group['name'])
        )
        deleted = 0
        for group_id in stale:
            try:
                self.client.delete_group(group_id)
            except ApiError as exc:
                if exc.status_code != 404:
                    raise
            else:
                deleted += 1
        self._created_temp_groups.clear()
        if self.current_group_id in stale:
            self.current_group_id = None
            self.markers = []
        self.temp_group_id = None
        return deleted

    def _marker(self, location_id: str) -> Marker:
        for marker in self.markers:
            if marker.location_id == location_id:
                return marker
        raise KeyError(location_id)
