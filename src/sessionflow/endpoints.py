# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Typed helpers for the auth/session surface of the API.

Thin wrappers over :meth:`SessionClient.send`; each returns the unwrapped
``data`` payload and raises :class:`~sessionflow.errors.NormalizedError`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypedDict

if TYPE_CHECKING:
    from .client import SessionClient
    from .scope_store import ScopeId


class AuthTokens(TypedDict, total=False):
    accessToken: str


class HealthPayload(TypedDict):
    ok: bool


def _remember_token(client: SessionClient, data: Any) -> None:
    if isinstance(data, dict):
        token = data.get("accessToken")
        if isinstance(token, str) and token:
            client.set_access_token(token)


async def login(client: SessionClient, email: str, password: str) -> AuthTokens:
    data = await client.post("/auth/login", body={"email": email, "password": password})
    _remember_token(client, data)
    return data


async def register(client: SessionClient, payload: dict[str, Any]) -> AuthTokens:
    data = await client.post("/auth/register", body=payload)
    _remember_token(client, data)
    return data


async def logout(client: SessionClient) -> None:
    """Log out server-side; local token and scope are cleared even if that fails."""
    try:
        await client.post("/auth/logout")
    finally:
        client.set_access_token(None)
        client.select_scope(None)


async def current_user(client: SessionClient) -> dict[str, Any]:
    return await client.get("/me")


async def list_scopes(client: SessionClient) -> list[dict[str, Any]]:
    """Shops (scopes) the current user can act in."""
    return await client.get("/shop/all")


def select_scope(client: SessionClient, scope_id: ScopeId | None) -> None:
    client.select_scope(scope_id)


async def system_health(client: SessionClient) -> HealthPayload:
    return await client.get("/system/health")
