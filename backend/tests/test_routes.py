"""
Tests for API route endpoints.

Runs the FastAPI app over ASGITransport with the rental backend mocked and
an in-memory callback ledger (see conftest.client).
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import time
from unittest.mock import AsyncMock

import jwt
import pytest

from config import settings
from domain.enums import RentalOrderStatus
from domain.errors import NotFoundError, StoreUnavailableError
from models import Customer

from tests.conftest import TEST_ORDER_ID, make_order

VNPAY_QUERY = "vnp_TxnRef=ABC123&vnp_ResponseCode=00&vnp_Amount=50000000&vnp_OrderInfo=Thanh+toan+%236"


class TestHealthEndpoint:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_healthy(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_backend_down(self, client, mock_store):
        mock_store.ping.return_value = False
        response = await client.get("/health")
        assert response.status_code == 503
        assert response.json()["rental_backend_connected"] is False


class TestPaymentCallbacks:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_vnpay_success(self, client, mock_store):
        response = await client.get(f"/payments/vnpay/callback?{VNPAY_QUERY}")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["outcome"] == "success"
        assert data["orderId"] == TEST_ORDER_ID
        assert data["confirmed"] is True
        assert data["autoAdvanced"] is True
        assert data["orderSnapshot"]["status"] == int(RentalOrderStatus.RENTING)

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_vnpay_redelivery_replayed(self, client, mock_store):
        await client.get(f"/payments/vnpay/callback?{VNPAY_QUERY}")
        response = await client.get(f"/payments/vnpay/callback?{VNPAY_QUERY}")

        assert response.status_code == 200
        assert response.json()["data"]["duplicate"] is True
        assert mock_store.confirm_deposit.await_count == 1

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_missing_parameters_400(self, client, mock_store):
        response = await client.get("/payments/vnpay/callback?vnp_ResponseCode=00")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "missingparameters"
        assert error["details"]["reason"] == "MissingParameters"
        mock_store.confirm_deposit.assert_not_awaited()

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_gateway_failure_402(self, client):
        response = await client.get(
            "/payments/momo/callback?orderId=M1&resultCode=1006&message=Transaction+denied"
        )

        assert response.status_code == 402
        error = response.json()["error"]
        assert error["message"] == "Payment failed. Transaction denied"
        assert error["details"]["rawGatewayMessage"] == "Transaction denied"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_backend_down_still_success(self, client, mock_store):
        mock_store.confirm_deposit.side_effect = StoreUnavailableError("down")
        response = await client.get(f"/payments/vnpay/callback?{VNPAY_QUERY}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["confirmed"] is False
        assert data["message"] == "Payment acknowledged by gateway, order processing."

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_momo_success(self, client, mock_store):
        response = await client.get(
            "/payments/momo/callback?orderId=MOMO1&requestId=REQ_6&resultCode=0&message=Successful."
        )
        assert response.status_code == 200
        mock_store.confirm_deposit_momo.assert_awaited_once()

    @pytest.mark.api
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path, confirm", [
        (f"/payments/vnpay/callback?{VNPAY_QUERY}", "confirm_deposit"),
        ("/payments/momo/callback?orderId=MOMO1&requestId=REQ_6&resultCode=0&message=Successful.",
         "confirm_deposit_momo"),
    ])
    async def test_expired_token_still_confirms(self, client, mock_store, monkeypatch, path, confirm):
        from main import app
        from middleware.auth import get_session

        app.dependency_overrides.pop(get_session, None)
        monkeypatch.setattr(settings, "jwt_secret", "rental-test-signing-secret-0123456789")
        token = jwt.encode(
            {"sub": "17", "exp": int(time.time()) - 300},
            "rental-test-signing-secret-0123456789",
            algorithm="HS256",
        )

        response = await client.get(path, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["data"]["outcome"] == "success"
        getattr(mock_store, confirm).assert_awaited_once()
        forwarded = getattr(mock_store, confirm).await_args.args[0]
        assert forwarded.token == token


class TestOrderEndpoints:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_transitions(self, client):
        response = await client.get(f"/orders/{TEST_ORDER_ID}/transitions")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["currentStatus"] == {"value": 3, "name": "CONFIRMED"}
        assert [s["name"] for s in data["availableStatuses"]] == ["RENTING", "CANCELLED"]

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_update_status(self, client, mock_store):
        response = await client.put(f"/orders/{TEST_ORDER_ID}/status", json={"status": "Renting"})

        assert response.status_code == 200
        assert response.json()["data"]["status"] == 4
        mock_store.update_order_status.assert_awaited_once()

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_illegal_update_409(self, client, mock_store):
        mock_store.get_order.return_value = make_order(status=RentalOrderStatus.CANCELLED)
        response = await client.put(f"/orders/{TEST_ORDER_ID}/status", json={"status": 4})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "illegaltransition"
        mock_store.update_order_status.assert_not_awaited()

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_unknown_order_404(self, client, mock_store):
        mock_store.get_order = AsyncMock(side_effect=NotFoundError("Rental order", "99"))
        response = await client.get("/orders/99/transitions")
        assert response.status_code == 404

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_non_positive_id_400(self, client):
        response = await client.get("/orders/0/transitions")
        assert response.status_code == 400

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_unknown_status_422(self, client):
        response = await client.put(f"/orders/{TEST_ORDER_ID}/status", json={"status": "CheckedIn"})
        assert response.status_code == 422

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_backend_unavailable_502(self, client, mock_store):
        mock_store.get_order = AsyncMock(side_effect=StoreUnavailableError("down"))
        response = await client.get(f"/orders/{TEST_ORDER_ID}/transitions")
        assert response.status_code == 502
        assert response.json()["success"] is False


class TestLicenseEndpoint:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_verified_by_profile(self, client):
        response = await client.get("/licenses/17/verification")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data == {"customerId": 17, "isVerified": True, "source": "Profile"}


class TestRiskEndpoints:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_paginated_list(self, client, mock_store):
        mock_store.list_customers.return_value = [
            Customer(id=i, point=100 - i * 10, role="Customer") for i in range(1, 6)
        ]
        response = await client.get("/risk/customers?limit=2&offset=1")

        assert response.status_code == 200
        body = response.json()
        assert [p["customerId"] for p in body["data"]] == [4, 3]
        assert body["meta"]["total"] == 5
        assert body["meta"]["hasMore"] is True
        assert body["data"][0]["riskLevel"] == "Medium"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_history(self, client, mock_store):
        mock_store.list_customers.return_value = [Customer(id=17, point=85, role="Customer")]
        mock_store.list_orders.return_value = [
            make_order(order_id=4521, status=RentalOrderStatus.CANCELLED, updated_at="2024-05-01T10:45:00"),
        ]
        response = await client.get("/risk/customers/17/history")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["profile"]["riskLevel"] == "Low"
        assert data["deductions"][0]["cancelledWithin1Hour"] is True
        assert data["totalPointsDeducted"] == 5

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_history_unknown_customer_404(self, client):
        response = await client.get("/risk/customers/404/history")
        assert response.status_code == 404
