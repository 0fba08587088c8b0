"""
Tests for authentication endpoints: registration, login and role checks.
"""

import jwt
import pytest
from httpx import AsyncClient

from seatbook.core.config import get_settings


@pytest.mark.asyncio
async def test_register_user(client: AsyncClient):
    """Successful registration returns user data with the default role."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "new@example.com",
        "username": "newuser",
        "password": "securepassword123",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "new@example.com"
    assert data["username"] == "newuser"
    assert data["role"] == "student"
    assert "hashed_password" not in data  # Never expose password hash


@pytest.mark.asyncio
async def test_register_librarian(client: AsyncClient):
    response = await client.post("/api/v1/auth/register", json={
        "email": "lib@example.com",
        "username": "newlibrarian",
        "password": "securepassword123",
        "role": "librarian",
    })
    assert response.status_code == 201
    assert response.json()["role"] == "librarian"


@pytest.mark.asyncio
async def test_register_cannot_create_admin(client: AsyncClient):
    response = await client.post("/api/v1/auth/register", json={
        "email": "root@example.com",
        "username": "root",
        "password": "securepassword123",
        "role": "admin",
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, users):
    """Duplicate email returns 409."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "student@example.com",
        "username": "different",
        "password": "securepassword123",
    })
    assert response.status_code == 409
    assert response.json()["code"] == "Conflict"


@pytest.mark.asyncio
async def test_register_duplicate_username(client: AsyncClient, users):
    """Duplicate username returns 409."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "different@example.com",
        "username": "student",
        "password": "securepassword123",
    })
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_register_weak_password(client: AsyncClient):
    """Password under 8 chars returns 422."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "weak@example.com",
        "username": "weakuser",
        "password": "short",
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, users):
    """Valid credentials return a JWT carrying id and role."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "librarian@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"

    settings = get_settings()
    claims = jwt.decode(data["access_token"], settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert claims["sub"] == str(users.librarian)
    assert claims["role"] == "librarian"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, users):
    """Wrong password returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "student@example.com",
        "password": "wrongpassword",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_nonexistent_email(client: AsyncClient):
    """Non-existent email returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "nobody@example.com",
        "password": "anypassword123",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(client: AsyncClient):
    response = await client.get("/api/v1/wallet")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_garbage_token_is_unauthorized(client: AsyncClient):
    response = await client.get("/api/v1/wallet", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_wrong_role_is_forbidden(client: AsyncClient, headers):
    """Wallet endpoints are for students only."""
    response = await client.get("/api/v1/wallet", headers=headers.librarian)
    assert response.status_code == 403
