"""
Tests for root, metrics and error-shape behaviour of the app.
"""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_root(client: AsyncClient):
    response = await client.get("/")
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_metrics_exposes_request_counters(client: AsyncClient):
    await client.get("/")

    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text


@pytest.mark.asyncio
async def test_errors_use_detail_shape(client: AsyncClient):
    response = await client.get("/orders/anything")

    assert response.status_code == 401
    assert set(response.json()) == {"detail"}
