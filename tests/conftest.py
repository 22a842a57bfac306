"""Pytest configuration and shared fixtures for dsld tests."""

import pytest
from aiohttp import ClientSession
from aiohttp.test_utils import TestServer

from dsld.station import SessionClient
from fake_station import FakeStation


@pytest.fixture
async def station():
    fake = FakeStation()
    server = TestServer(fake.create_app())
    await server.start_server()
    fake.base_url = str(server.make_url("/"))
    try:
        yield fake
    finally:
        await server.close()


@pytest.fixture
async def client(station: FakeStation):
    async with ClientSession() as curl:
        yield SessionClient(
            base_url=station.base_url,
            username="admin",
            password="secret",
            session=curl,
        )
