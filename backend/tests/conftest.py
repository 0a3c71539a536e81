"""Test fixtures — settings via environment, initialized services, ASGI test client."""

import os

# Settings are read at import time; required fields must exist before any wakegate import
os.environ.setdefault("WAKEGATE_HEALTH_CHECK", "http://backend.test/health")
os.environ.setdefault("WAKEGATE_UPSTREAM_URL", "http://backend.test")
os.environ.setdefault("WAKEGATE_MAC_ADDRESS", "00:11:22:33:44:55")
os.environ.setdefault("WAKEGATE_BROADCAST_ADDRESS", "192.0.2.255")
os.environ.setdefault("WAKEGATE_ENABLE_CONTROL_PAGE", "true")

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from wakegate.config import settings
from wakegate.main import create_app
from wakegate.services import get_health_monitor, init_services, shutdown_services
from wakegate.services.health_monitor import HealthMonitor
from wakegate.utils.wol import WakeTarget


@pytest.fixture
def wake_target() -> WakeTarget:
    return WakeTarget(
        hardware_address=bytes.fromhex("001122334455"),
        unicast_address=None,
        broadcast_addresses=("192.0.2.255",),
        port=9,
    )


@pytest.fixture
def health_monitor() -> HealthMonitor:
    """Monitor whose probe is an AsyncMock (unhealthy unless told otherwise)."""
    monitor = HealthMonitor("http://backend.test/health", interval=10)
    monitor.probe = AsyncMock(return_value=False)
    return monitor


@pytest_asyncio.fixture
async def services():
    """Real service singletons built from the test settings; probe is mocked."""
    init_services(settings)
    get_health_monitor().probe = AsyncMock(return_value=False)
    yield
    await shutdown_services()


@pytest_asyncio.fixture
async def client(services):
    """Async test client against the full app (control page enabled)."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
