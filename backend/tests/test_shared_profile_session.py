from __future__ import annotations

import asyncio

import httpx
import pytest

from async_utils import run
from share_access_core import (
    AccessGate,
    ChallengeResolver,
    ChallengeStateError,
    Challenging,
    Failed,
    Loading,
    SharedProfileSession,
    Viewing,
)
from share_client import PublicProfileClient, build_public_client


def _session(api: PublicProfileClient, handle: str) -> SharedProfileSession:
    return SharedProfileSession(handle, gate=AccessGate(api), resolver=ChallengeResolver(api))


def test_new_session_starts_loading(make_public_api):
    session = _session(make_public_api(), "open-olivia")
    assert isinstance(session.state, Loading)
    assert session.render() == {"screen": "loading", "message": "Loading profile..."}
    assert session.loaded is False


def test_public_profile_loads_straight_to_viewing(make_public_api):
    session = _session(make_public_api(), "open-olivia")
    state = run(session.load())
    assert isinstance(state, Viewing)
    screen = session.render()
    assert screen["screen"] == "profile"
    assert [item["key"] for item in screen["profile"]["items"]] == ["bloodType", "emergencyContact"]
    assert session.has_grant is False


def test_password_challenge_round_trip(make_public_api):
    session = _session(make_public_api(), "locked-larry")

    async def scenario():
        await session.load()
        assert session.state == Challenging(challenge="password")
        await session.submit_password("wrong")
        assert session.last_error == "Incorrect password"
        assert session.state == Challenging(challenge="password")
        return await session.submit_password("hunter22")

    state = run(scenario())
    assert isinstance(state, Viewing)
    assert state.view.blood_type == "A-"
    assert session.last_error is None
    assert session.has_grant is True


def test_password_screen_copy(make_public_api):
    session = _session(make_public_api(), "locked-larry")
    run(session.load())
    screen = session.render()
    assert screen["title"] == "Password Required"
    assert screen["challenge"] == "password"
    assert screen["busy"] is False
    assert "otp" not in screen


def test_otp_challenge_unlocks_only_granted_fields(make_public_api, fake_backend):
    session = _session(make_public_api(), "jane-doe")

    async def scenario():
        await session.load()
        assert isinstance(session.state, Challenging)
        assert session.render()["otp"]["step"] == "idle"
        result = await session.request_otp()
        assert result is not None
        screen = session.render()
        assert screen["otp"]["step"] == "requested"
        assert screen["otp"]["can_resend"] is True
        return await session.submit_otp("482913")

    state = run(scenario())
    assert isinstance(state, Viewing)
    assert state.view.blood_type == "O+"
    assert state.view.allergies is None
    assert state.view.chronic_conditions is None
    assert state.view.emergency_contact is None
    keys = [item["key"] for item in session.render()["profile"]["items"]]
    assert keys == ["bloodType"]


def test_wrong_otp_keeps_challenge_and_entered_code(make_public_api):
    session = _session(make_public_api(), "jane-doe")

    async def scenario():
        await session.load()
        await session.request_otp("visitor@example.com")
        session.enter_otp("111111")
        return await session.submit_otp()

    state = run(scenario())
    assert state == Challenging(challenge="otp")
    screen = session.render()
    assert screen["error"] == "Invalid OTP"
    assert screen["otp"]["code"] == "111111"
    assert screen["otp"]["email"] == "visitor@example.com"


def test_otp_actions_require_an_otp_challenge(make_public_api):
    session = _session(make_public_api(), "locked-larry")
    run(session.load())
    with pytest.raises(ChallengeStateError):
        run(session.request_otp())
    with pytest.raises(ChallengeStateError):
        session.enter_otp("123")


def test_repeated_challenge_after_grant_fails_as_inconsistent(make_public_api, fake_backend):
    fake_backend.always_require_auth = True
    session = _session(make_public_api(), "locked-larry")

    async def scenario():
        await session.load()
        return await session.submit_password("hunter22")

    state = run(scenario())
    assert isinstance(state, Failed)
    assert state.error == "inconsistent"
    assert session.has_grant is False
    assert [path for method, path in fake_backend.calls if method == "GET"].count(
        "/api/public/profile/locked-larry"
    ) == 2


def test_different_challenge_after_grant_also_fails_as_inconsistent(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"success": True, "token": "tok"})
        kind = "otp" if request.url.params.get("token") else "password"
        return httpx.Response(401, json={"success": False, "requiresAuth": True, "accessType": kind})

    api = PublicProfileClient(build_public_client(settings, transport=httpx.MockTransport(handler)))
    session = _session(api, "shifty")

    async def scenario():
        await session.load()
        assert session.state == Challenging(challenge="password")
        return await session.submit_password("pw")

    state = run(scenario())
    assert isinstance(state, Failed)
    assert state.error == "inconsistent"
    assert session.otp is None


def test_unavailable_profile_renders_terminal_error(make_public_api):
    session = _session(make_public_api(), "private-paul")
    run(session.load())
    screen = session.render()
    assert screen == {
        "screen": "error",
        "title": "Error Loading Profile",
        "error": "unavailable",
        "message": "Profile not found or not public",
        "retryable": False,
    }


def test_network_failure_is_retryable_and_retry_recovers(settings):
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("offline", request=request)
        return httpx.Response(200, json={"success": True, "data": {"name": "Olivia Open"}})

    api = PublicProfileClient(build_public_client(settings, transport=httpx.MockTransport(handler)))
    session = _session(api, "open-olivia")

    failed = run(session.load())
    assert isinstance(failed, Failed)
    assert failed.error == "network"
    assert failed.retryable is True

    recovered = run(session.retry())
    assert isinstance(recovered, Viewing)
    assert recovered.view.name == "Olivia Open"


def test_retry_forgets_grant_and_challenge_progress(make_public_api):
    session = _session(make_public_api(), "jane-doe")

    async def scenario():
        await session.load()
        await session.request_otp()
        await session.submit_otp("482913")
        assert session.has_grant is True
        return await session.retry()

    state = run(scenario())
    assert state == Challenging(challenge="otp")
    assert session.has_grant is False
    assert session.render()["otp"]["step"] == "idle"


def test_response_arriving_after_close_is_ignored(settings):
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return httpx.Response(200, json={"success": True, "data": {"name": "Late Larry"}})

    api = PublicProfileClient(build_public_client(settings, transport=httpx.MockTransport(handler)))
    session = _session(api, "locked-larry")

    async def scenario():
        pending = asyncio.create_task(session.load())
        await asyncio.sleep(0)
        session.close()
        release.set()
        return await pending

    state = run(scenario())
    assert isinstance(state, Loading)
    assert session.closed is True
    assert session.has_grant is False


def test_response_from_superseded_load_is_ignored(settings):
    first_started = asyncio.Event()
    first_release = asyncio.Event()
    calls = {"count": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            first_started.set()
            await first_release.wait()
            return httpx.Response(404, json={"success": False, "message": "gone"})
        return httpx.Response(200, json={"success": True, "data": {"name": "Fresh"}})

    api = PublicProfileClient(build_public_client(settings, transport=httpx.MockTransport(handler)))
    session = _session(api, "someone")

    async def scenario():
        stale = asyncio.create_task(session.load())
        await first_started.wait()
        await session.retry()
        first_release.set()
        await stale

    run(scenario())
    assert isinstance(session.state, Viewing)
    assert session.state.view.name == "Fresh"


def test_closed_session_refuses_challenge_actions(make_public_api):
    session = _session(make_public_api(), "locked-larry")
    run(session.load())
    session.close()
    with pytest.raises(ChallengeStateError):
        run(session.submit_password("hunter22"))
    with pytest.raises(ChallengeStateError):
        run(session.retry())
