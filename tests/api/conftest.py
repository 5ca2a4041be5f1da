import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.database import get_db, get_session_factory
from app.domains.chat.controller import get_gateway
from app.main import app
from tests.helpers import make_gateway, stream_of


@pytest.fixture
def gateway_handler():
    """Recording gateway handler; tests swap ``respond`` to change the reply."""
    gateway, handler = make_gateway(stream_of("Hello", " there", "!"))
    handler.gateway = gateway
    return handler


@pytest_asyncio.fixture
async def client(test_db, session_factory, gateway_handler):
    """Create a test client with database and gateway overrides."""
    app.dependency_overrides[get_db] = lambda: test_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_gateway] = lambda: gateway_handler.gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def authenticated_client(client, auth_headers):
    client.headers.update(auth_headers)
    yield client
