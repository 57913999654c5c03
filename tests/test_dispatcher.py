# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for sessionflow.dispatcher — header injection, 401 recovery, unwrap."""

from __future__ import annotations

import asyncio
import json
from http.cookiejar import CookieJar
from unittest.mock import MagicMock

import httpx
import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from sessionflow import RequestConfig
from sessionflow.dispatcher import RequestDispatcher
from sessionflow.errors import ErrorClassification, NormalizedError
from sessionflow.refresh import RefreshCoordinator
from sessionflow.scope_store import CookieJarStore, ScopedContextStore
from sessionflow.tokens import AccessTokenHolder
from sessionflow.transport import Transport
from tests._http_helpers import fail, ok

# ── Envelope unwrap ─────────────────────────────────────────────


class TestUnwrap:
    async def test_returns_inner_data_only(self, api, client):
        api.add("GET", "/item", ok({"id": 1}))
        result = await client.get("/item")
        assert result == {"id": 1}

    async def test_list_payload(self, api, client):
        api.add("GET", "/items", ok([1, 2, 3]))
        assert await client.get("/items") == [1, 2, 3]

    async def test_null_data(self, api, client):
        api.add("DELETE", "/item", ok(None))
        assert await client.delete("/item") is None

    async def test_no_content(self, api, client):
        api.add("DELETE", "/thing", httpx.Response(204))
        assert await client.delete("/thing") is None

    async def test_empty_200_body(self, api, client):
        api.add("POST", "/auth/logout", httpx.Response(200))
        assert await client.post("/auth/logout") is None

    async def test_whitespace_body_is_transport_error(self, api, client):
        api.add("GET", "/blank", httpx.Response(200, text=" "))
        with pytest.raises(NormalizedError) as exc_info:
            await client.get("/blank")
        assert exc_info.value.classification is ErrorClassification.TRANSPORT

    async def test_non_envelope_body_is_transport_error(self, api, client):
        api.add("GET", "/html", httpx.Response(200, text="<html></html>"))
        with pytest.raises(NormalizedError) as exc_info:
            await client.get("/html")
        assert exc_info.value.classification is ErrorClassification.TRANSPORT

    async def test_success_false_is_server_error(self, api, client):
        api.add("GET", "/odd", (200, {"success": False, "data": None, "message": "Shop is archived"}))
        with pytest.raises(NormalizedError) as exc_info:
            await client.get("/odd")
        assert exc_info.value.message == "Shop is archived"
        assert exc_info.value.classification is ErrorClassification.SERVER


# ── Header injection ────────────────────────────────────────────


class TestScopeHeader:
    async def test_injected_when_scope_set(self, api, client):
        api.add("GET", "/shop")
        client.select_scope(7)
        await client.get("/shop")
        assert api.last_request("/shop").headers["x-shop-id"] == "7"

    async def test_absent_without_scope(self, api, client):
        api.add("GET", "/shop")
        await client.get("/shop")
        assert "x-shop-id" not in api.last_request("/shop").headers

    async def test_caller_value_wins(self, api, client):
        api.add("GET", "/shop")
        client.select_scope(7)
        await client.get("/shop", headers={"X-Shop-Id": "99"})
        assert api.last_request("/shop").headers.get_list("x-shop-id") == ["99"]

    async def test_caller_headers_not_mutated(self, api, client):
        api.add("GET", "/shop")
        client.select_scope(7)
        config = RequestConfig(url="/shop", headers={"X-Trace": "abc"})
        await client.send(config)
        assert "x-shop-id" not in config.headers
        assert config.headers["x-trace"] == "abc"

    async def test_bearer_token_attached(self, api, client):
        api.add("GET", "/me", ok({"id": "u1"}))
        client.set_access_token("tok-1")
        await client.get("/me")
        assert api.last_request("/me").headers["authorization"] == "Bearer tok-1"

    async def test_no_authorization_without_token(self, api, client):
        api.add("GET", "/me", ok({"id": "u1"}))
        await client.get("/me")
        assert "authorization" not in api.last_request("/me").headers

    async def test_query_and_body_forwarded(self, api, client):
        api.add("POST", "/bookings", ok({"id": 5}))
        await client.post("/bookings", body={"serviceId": 3}, params={"notify": "1"})
        request = api.last_request("/bookings")
        assert request.url.params["notify"] == "1"
        assert json.loads(request.content) == {"serviceId": 3}


_SCOPE_IDS = st.one_of(
    st.integers(min_value=0, max_value=10**9),
    st.from_regex(r"[a-z][a-z0-9-]{0,15}", fullmatch=True),
)
_HEADER_VALUES = st.from_regex(r"[A-Za-z0-9-]{1,20}", fullmatch=True)


def _header_dispatcher(scope) -> RequestDispatcher:
    """Dispatcher over an in-memory scope store; transport and refresh are never used."""
    store = ScopedContextStore(CookieJarStore(CookieJar(), "api.test"))
    store.set(scope)
    return RequestDispatcher(
        MagicMock(spec=Transport),
        MagicMock(spec=RefreshCoordinator),
        store,
        scope_header="x-shop-id",
        tokens=AccessTokenHolder(),
    )


class TestHeaderPrecedenceProperties:
    @given(scope=st.one_of(st.none(), _SCOPE_IDS))
    @settings(max_examples=100, suppress_health_check=[HealthCheck.too_slow])
    def test_scope_header_mirrors_store(self, scope):
        prepared = _header_dispatcher(scope)._prepare(RequestConfig(url="/x"))
        if scope is None:
            assert "x-shop-id" not in prepared.headers
        else:
            assert prepared.headers.get_list("x-shop-id") == [str(scope)]

    @given(
        scope=st.one_of(st.none(), _SCOPE_IDS),
        name=st.sampled_from(["x-shop-id", "X-Shop-Id", "X-SHOP-ID"]),
        value=_HEADER_VALUES,
    )
    @settings(max_examples=100, suppress_health_check=[HealthCheck.too_slow])
    def test_caller_header_always_wins(self, scope, name, value):
        config = RequestConfig(url="/x", headers={name: value})
        prepared = _header_dispatcher(scope)._prepare(config)
        assert prepared.headers.get_list("x-shop-id") == [value]
        assert config.headers.get_list("x-shop-id") == [value]


# ── Session recovery ────────────────────────────────────────────


class TestRecovery:
    async def test_expired_session_refreshed_and_replayed(self, api, client, navigator):
        api.session_valid = False
        api.add("GET", "/me", ok({"id": "u1"}), protected=True)
        assert await client.get("/me") == {"id": "u1"}
        assert api.refresh_calls == 1
        assert api.count("GET", "/me") == 2
        assert navigator.history == []

    async def test_replay_carries_refreshed_token(self, api, client):
        api.session_valid = False
        api.refresh_token = "fresh"
        api.add("GET", "/me", ok({"id": "u1"}), protected=True)
        client.set_access_token("stale")
        await client.get("/me")
        assert api.last_request("/me").headers["authorization"] == "Bearer fresh"

    async def test_at_most_one_replay(self, api, client, navigator):
        api.add("GET", "/locked", fail(401, "Unauthorized"))
        with pytest.raises(NormalizedError) as exc_info:
            await client.get("/locked")
        assert exc_info.value.status_code == 401
        assert api.count("GET", "/locked") == 2
        assert api.refresh_calls == 1
        assert navigator.history == ["/login"]

    async def test_refresh_endpoint_401_never_refreshes(self, api, client, navigator):
        api.add("POST", "/auth/refresh", fail(401, "Refresh token expired"))
        with pytest.raises(NormalizedError) as exc_info:
            await client.post("/auth/refresh")
        assert exc_info.value.message == "Refresh token expired"
        assert api.refresh_calls == 1  # the caller's own call, nothing nested
        assert navigator.history == ["/login"]

    async def test_absolute_refresh_url_detected(self, api, client):
        api.add("POST", "/auth/refresh", fail(401))
        with pytest.raises(NormalizedError):
            await client.post("http://api.test/api/v1/auth/refresh")
        assert api.refresh_calls == 1

    async def test_failed_refresh_tears_down_session(self, api, client, navigator):
        api.session_valid = False
        api.refresh_status = 500
        api.add("GET", "/me", ok({"id": "u1"}), protected=True)
        client.select_scope(3)
        client.set_access_token("tok")
        with pytest.raises(NormalizedError) as exc_info:
            await client.get("/me")
        assert exc_info.value.status_code == 401
        assert client.active_scope is None
        assert client.tokens.get() is None
        assert navigator.history == ["/login"]
        assert api.count("GET", "/me") == 1

    async def test_no_redirect_when_already_on_login(self, api, client, navigator):
        navigator.navigate("/login")
        api.add("GET", "/locked", fail(401))
        with pytest.raises(NormalizedError):
            await client.get("/locked")
        assert navigator.history == ["/login"]

    async def test_retried_flag_set_once(self, api, client):
        api.session_valid = False
        api.add("GET", "/me", ok({"id": "u1"}), protected=True)
        config = RequestConfig(url="/me")
        await client.send(config)
        assert config.retried is True

    async def test_already_retried_config_not_refreshed(self, api, client):
        api.add("GET", "/locked", fail(401))
        config = RequestConfig(url="/locked")
        config.retried = True
        with pytest.raises(NormalizedError):
            await client.send(config)
        assert api.refresh_calls == 0


# ── Concurrency scenarios ───────────────────────────────────────


class TestConcurrentExpiry:
    async def test_parallel_401s_share_one_refresh(self, api, client, navigator):
        api.session_valid = False
        api.refresh_delay = 0.05
        api.add("GET", "/a", ok("A"), protected=True)
        api.add("GET", "/b", ok("B"), protected=True)

        results = await asyncio.gather(client.get("/a"), client.get("/b"))

        assert results == ["A", "B"]
        assert api.refresh_calls == 1
        assert navigator.history == []

    async def test_many_parallel_401s(self, api, client):
        api.session_valid = False
        api.refresh_delay = 0.02
        for i in range(10):
            api.add("GET", f"/r{i}", ok(i), protected=True)

        results = await asyncio.gather(*(client.get(f"/r{i}") for i in range(10)))

        assert results == list(range(10))
        assert api.refresh_calls == 1

    async def test_parallel_failure_redirects_once(self, api, client, navigator):
        api.session_valid = False
        api.refresh_delay = 0.05
        api.refresh_status = 500
        api.add("GET", "/a", ok("A"), protected=True)
        api.add("GET", "/b", ok("B"), protected=True)
        client.select_scope(12)

        results = await asyncio.gather(client.get("/a"), client.get("/b"), return_exceptions=True)

        assert all(isinstance(r, NormalizedError) for r in results)
        assert api.refresh_calls == 1
        assert client.active_scope is None
        assert navigator.history == ["/login"]

    async def test_later_expiry_starts_new_refresh(self, api, client):
        api.session_valid = False
        api.add("GET", "/me", ok({"id": "u1"}), protected=True)
        await client.get("/me")
        api.session_valid = False
        await client.get("/me")
        assert api.refresh_calls == 2


# ── Non-session failures ────────────────────────────────────────


class TestOtherFailures:
    async def test_server_error_keeps_session(self, api, client, navigator):
        api.add("GET", "/boom", fail(500, "Database unavailable"))
        client.select_scope(4)
        with pytest.raises(NormalizedError) as exc_info:
            await client.get("/boom")
        err = exc_info.value
        assert err.message == "Database unavailable"
        assert err.classification is ErrorClassification.SERVER
        assert err.status_code == 500
        assert client.active_scope == 4
        assert navigator.history == []
        assert api.refresh_calls == 0

    async def test_server_error_without_message(self, api, client):
        api.add("GET", "/boom", httpx.Response(503))
        with pytest.raises(NormalizedError) as exc_info:
            await client.get("/boom")
        assert exc_info.value.message == "Request failed with status code 503"

    async def test_network_error_is_transport(self, api, client):
        api.add("GET", "/down", httpx.ConnectError("connection refused"))
        with pytest.raises(NormalizedError) as exc_info:
            await client.get("/down")
        err = exc_info.value
        assert err.classification is ErrorClassification.TRANSPORT
        assert "connection refused" in err.message
        assert err.status_code is None

    async def test_error_chained_to_cause(self, api, client):
        api.add("GET", "/boom", fail(500, "x"))
        with pytest.raises(NormalizedError) as exc_info:
            await client.get("/boom")
        assert exc_info.value.__cause__ is exc_info.value.cause
