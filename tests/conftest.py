"""
Shared test fixtures.

Two flavours of backend:

* ``backend`` / ``api`` -- a FastAPI fake served in-process through
  ``httpx.ASGITransport``, so the real client code (auth header, paths,
  schema parsing) is exercised without a network.
* ``mock_api`` -- an ``AsyncMock`` shaped like ``DispatchApiClient`` for
  loop and coordinator tests that script responses call by call.
"""

from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from dispatch_engine.api.client import DispatchApiClient
from dispatch_engine.infrastructure.session import AuthSession
from tests.fake_backend import CUSTOMER_ID, RIDER_ID, TEST_TOKEN, FakeBackend, make_client


@pytest.fixture
def customer_session() -> AuthSession:
    return AuthSession(token=TEST_TOKEN, user_id=CUSTOMER_ID)


@pytest.fixture
def rider_session() -> AuthSession:
    return AuthSession(token=TEST_TOKEN, user_id=RIDER_ID, rider_id=RIDER_ID)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def api(
    backend: FakeBackend, customer_session: AuthSession
) -> AsyncGenerator[DispatchApiClient, None]:
    client = make_client(backend, customer_session)
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def rider_api(
    backend: FakeBackend, rider_session: AuthSession
) -> AsyncGenerator[DispatchApiClient, None]:
    client = make_client(backend, rider_session)
    yield client
    await client.aclose()


@pytest.fixture
def mock_api(customer_session: AuthSession) -> AsyncMock:
    mock = AsyncMock(spec=DispatchApiClient)
    mock.session.return_value = customer_session
    return mock
