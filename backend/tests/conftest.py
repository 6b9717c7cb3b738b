from __future__ import annotations

import importlib
import sys
from datetime import timedelta
from pathlib import Path
from typing import Callable

import httpx
import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from share_access_core.time_utils import utc_now  # noqa: E402
from share_client import PublicProfileClient, ShareClientSettings, build_private_client, build_public_client  # noqa: E402

from fake_backend import FakeProfile, FakeSharingBackend  # noqa: E402

JANE_FIELDS = {
    "bloodType": "O+",
    "allergies": "Penicillin",
    "chronicConditions": "Asthma",
    "emergencyContact": {"name": "John Doe", "phone": "+15550100", "relationship": "Spouse"},
}


@pytest.fixture
def settings() -> ShareClientSettings:
    return ShareClientSettings(api_base_url="http://share.test", api_version="/api")


@pytest.fixture
def fake_backend() -> FakeSharingBackend:
    backend = FakeSharingBackend()
    backend.add_profile(
        FakeProfile(
            username="jane-doe",
            name="Jane Doe",
            email="jane@example.com",
            access_type="otp",
            public_fields=["bloodType"],
            fields=dict(JANE_FIELDS),
        ),
        owner_token="owner-jane",
    )
    backend.add_profile(
        FakeProfile(
            username="locked-larry",
            name="Larry Lock",
            access_type="password",
            password="hunter22",
            public_fields=["bloodType", "allergies"],
            fields={"bloodType": "A-", "allergies": "Peanuts", "chronicConditions": "Diabetes"},
        )
    )
    backend.add_profile(
        FakeProfile(
            username="open-olivia",
            name="Olivia Open",
            public_fields=["bloodType", "emergencyContact"],
            fields={"bloodType": "B+", "emergencyContact": {"name": "Sam", "phone": "+15550111"}},
        )
    )
    backend.add_profile(
        FakeProfile(
            username="expired-eve",
            name="Eve Expired",
            expires_at=utc_now() - timedelta(days=1),
            public_fields=["bloodType"],
            fields={"bloodType": "AB+"},
        )
    )
    backend.add_profile(
        FakeProfile(
            username="private-paul",
            name="Paul Private",
            is_public=False,
            public_fields=["bloodType"],
            fields={"bloodType": "O-"},
        )
    )
    return backend


@pytest.fixture
def make_public_api(settings, fake_backend) -> Callable[[], PublicProfileClient]:
    def _make() -> PublicProfileClient:
        transport = httpx.ASGITransport(app=fake_backend.app)
        return PublicProfileClient(build_public_client(settings, transport=transport))

    return _make


@pytest.fixture
def make_private_http(settings, fake_backend) -> Callable[[], httpx.AsyncClient]:
    def _make() -> httpx.AsyncClient:
        return build_private_client(settings, transport=httpx.ASGITransport(app=fake_backend.app))

    return _make


@pytest.fixture
def backend_module(monkeypatch, fake_backend):
    monkeypatch.setenv("HEALTHSHARE_API_BASE_URL", "http://share.test")
    monkeypatch.setenv("HEALTHSHARE_API_VERSION", "/api")
    monkeypatch.setenv("HEALTHSHARE_EXPOSE_DEV_OTP", "false")

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    monkeypatch.setattr(
        module,
        "container",
        module.ShareViewerApp(transport=httpx.ASGITransport(app=fake_backend.app)),
    )
    return module


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client
