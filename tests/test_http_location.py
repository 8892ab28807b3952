"""Unit tests for the HTTP positioning backend."""

from unittest.mock import MagicMock

import pytest
import requests

from fototrap.errors import PositioningUnavailable
from fototrap.location.base import Coordinate
from fototrap.location.http_location import HttpPositioning


def _response(status=200, body=None, json_error=None):
    response = MagicMock()
    response.status_code = status
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f'{status} error')
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def backend():
    gps = HttpPositioning('http://127.0.0.1:8080/location', timeout=1.0)
    gps.session = MagicMock()
    return gps


@pytest.mark.asyncio
async def test_lat_lng_body(backend):
    backend.session.get.return_value = _response(body={'lat': 70.6638, 'lng': 147.9152})

    assert await backend.request_fix() == Coordinate(70.6638, 147.9152)
    backend.session.get.assert_called_once_with('http://127.0.0.1:8080/location', timeout=1.0)


@pytest.mark.asyncio
async def test_latitude_longitude_body(backend):
    backend.session.get.return_value = _response(body={'latitude': '70.5', 'longitude': '147.5'})

    assert await backend.request_fix() == Coordinate(70.5, 147.5)


@pytest.mark.asyncio
async def test_no_fix_yet(backend):
    backend.session.get.return_value = _response(body={'mode': 1})

    assert await backend.request_fix() is None


@pytest.mark.asyncio
@pytest.mark.parametrize('status', [401, 403])
async def test_denied(backend, status):
    backend.session.get.return_value = _response(status=status)

    with pytest.raises(PositioningUnavailable, match='denied'):
        await backend.request_fix()


@pytest.mark.asyncio
async def test_connection_error(backend):
    backend.session.get.side_effect = requests.ConnectionError('refused')

    with pytest.raises(PositioningUnavailable):
        await backend.request_fix()


@pytest.mark.asyncio
async def test_server_error(backend):
    backend.session.get.return_value = _response(status=500)

    with pytest.raises(PositioningUnavailable):
        await backend.request_fix()


@pytest.mark.asyncio
async def test_invalid_json(backend):
    backend.session.get.return_value = _response(json_error=ValueError('no json'))

    with pytest.raises(PositioningUnavailable):
        await backend.request_fix()


@pytest.mark.asyncio
async def test_malformed_coordinate(backend):
    backend.session.get.return_value = _response(body={'lat': 'north', 'lng': 147.0})

    with pytest.raises(PositioningUnavailable):
        await backend.request_fix()
