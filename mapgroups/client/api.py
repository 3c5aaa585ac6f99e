"""HTTP client for the location groups API."""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'http://localhost:8000'


class ApiError(Exception):
    """A non-2xx response from the API."""

    def __init__(
        self, status_code: int, message: str, details: list[dict[str, Any]] | None = None
    ) -> None:
        super().__init__(f'{status_code}: {message}')
        self.status_code = status_code
        self.message = message
        self.details = details or []


class LocationGroupsClient:
    """Thin wrapper over the REST endpoints.

    The device cookie set by the server is kept by the underlying
    httpx.Client, so one client instance is one device.

    Args:
        base_url: Server root, without the /api prefix.
        http_client: Client to send requests with; any httpx.Client works,
            including fastapi.testclient.TestClient.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.http = http_client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> 'LocationGroupsClient':
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = self.http.request(method, f'/api{path}', **kwargs)
        if response.is_success:
            return response

        try:
            body = response.json()
        except ValueError:
            body = {}
        message = body.get('error') if isinstance(body, dict) else None
        details = body.get('details') if isinstance(body, dict) else None
        logger.debug('%s %s failed with %d', method, path, response.status_code)
        raise ApiError(
            response.status_code, message or response.reason_phrase or 'Request failed', details
        )

    def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        return self._request(method, path, **kwargs).json()

    # Groups

    def list_groups(self) -> list[dict[str, Any]]:
        return self._json('GET', '/location-groups')

    def get_group(self, group_id: str) -> dict[str, Any]:
        return self._json('GET', f'/location-groups/{group_id}')

    def create_group(
        self, name: str, locations: list[dict[str, Any]] | None = None
    ) -> dict[str, Any]:
        return self._json(
            'POST', '/location-groups', json={'name': name, 'locations': locations or []}
        )

    def update_group(
        self,
        group_id: str,
        name: str | None = None,
        locations: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if name is not None:
            payload['name'] = name
        if locations is not None:
            payload['locations'] = locations
        return self._json('PUT', f'/location-groups/{group_id}', json=payload)

    def delete_group(self, group_id: str) -> None:
        self._request('DELETE', f'/location-groups/{group_id}')

    # Locations

    def add_location(
        self, group_id: str, lat: float, lng: float, title: str, color: str | None = None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {'lat': lat, 'lng': lng, 'title': title}
        if color is not None:
            payload['color'] = color
        return self._json('POST', f'/location-groups/{group_id}/locations', json=payload)

    def update_location(self, group_id: str, location_id: str, color: str) -> dict[str, Any]:
        return self._json(
            'PUT', f'/location-groups/{group_id}/locations/{location_id}', json={'color': color}
        )

    def reorder_locations(self, group_id: str, location_ids: list[str]) -> list[dict[str, Any]]:
        body = self._json(
            'PUT',
            f'/location-groups/{group_id}/locations/reorder',
            json={'locationIds': location_ids},
        )
        return body['locations']

    def delete_location(self, group_id: str, location_id: str) -> None:
        self._request('DELETE', f'/location-groups/{group_id}/locations/{location_id}')

    # Geocoding and bulk import

    def geocode(self, address: str) -> dict[str, Any]:
        return self._json('GET', '/geocode', params={'q': address})

    def preview_bulk_import(self, text: str) -> dict[str, Any]:
        return self._json('POST', '/bulk-imports/preview', json={'text': text})

    def start_bulk_import(
        self, text: str, group_id: str | None = None, group_name: str | None = None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {'text': text}
        if group_id is not None:
            payload['groupId'] = group_id
        if group_name is not None:
            payload['groupName'] = group_name
        return self._json('POST', '/bulk-imports', json=payload)

    def get_bulk_import(self, job_id: str) -> dict[str, Any]:
        return self._json('GET', f'/bulk-imports/{job_id}')

    def cancel_bulk_import(self, job_id: str) -> None:
        self._request('DELETE', f'/bulk-imports/{job_id}')

    def failed_addresses(self, job_id: str) -> list[str]:
        text = self._request('GET', f'/bulk-imports/{job_id}/failed.txt').text
        return text.splitlines()

    # Export

    def export_csv(self, group_id: str) -> str:
        return self._request('GET', f'/location-groups/{group_id}/export.csv').text

    def export_zip(self, group_ids: list[str] | None = None) -> bytes:
        params = {'groupId': group_ids} if group_ids else None
        return self._request('GET', '/export.zip', params=params).content

    def export_marker_list(self, group_id: str) -> bytes:
        return self._request('GET', f'/location-groups/{group_id}/export.png').content

    def screenshot(self, group_id: str, map_png: bytes) -> bytes:
        return self._request(
            'POST',
            f'/location-groups/{group_id}/screenshot',
            files={'map': ('map.png', map_png, 'image/png')},
        ).content
