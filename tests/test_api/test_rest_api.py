"""HTTP tests for the REST resources around the purchase flow."""

from __future__ import annotations

import pytest

from igaming_exchange.domain.enums import ListingStatus

API = "/api/v1"


class TestListingsApi:
    @pytest.mark.asyncio
    async def test_browse_is_anonymous(self, client, listing, make_listing) -> None:
        await make_listing(title="Hidden draft", status=ListingStatus.DRAFT.value)

        resp = await client.get(f"{API}/listings", params={"search": "sportsbook"})

        assert resp.status_code == 200
        assert [item["id"] for item in resp.json()] == [str(listing.id)]

    @pytest.mark.asyncio
    async def test_create_submit_and_approve(
        self, client, seller, admin, auth_headers
    ) -> None:
        resp = await client.post(
            f"{API}/listings",
            json={"title": "Malta casino", "price": "250000", "category": "casino"},
            headers=auth_headers(seller),
        )
        assert resp.status_code == 201
        created = resp.json()
        assert created["status"] == "draft"

        resp = await client.post(
            f"{API}/listings/{created['id']}/submit", headers=auth_headers(seller)
        )
        assert resp.json()["status"] == "pending"

        resp = await client.post(
            f"{API}/listings/{created['id']}/approve", headers=auth_headers(admin)
        )
        assert resp.json()["status"] == "approved"

    @pytest.mark.asyncio
    async def test_blank_title_is_validation_error(self, client, seller, auth_headers) -> None:
        resp = await client.post(
            f"{API}/listings", json={"title": ""}, headers=auth_headers(seller)
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_ERROR"


class TestAccessApi:
    @pytest.mark.asyncio
    async def test_request_approve_sign(
        self, client, listing, buyer, seller, auth_headers
    ) -> None:
        resp = await client.post(
            f"{API}/access-requests",
            json={"listing_id": str(listing.id), "message": "Keen buyer"},
            headers=auth_headers(buyer),
        )
        assert resp.status_code == 201
        request_id = resp.json()["id"]

        resp = await client.post(
            f"{API}/access-requests/{request_id}/sign-nda", headers=auth_headers(buyer)
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "NDA_REQUIRES_APPROVAL"

        received = await client.get(
            f"{API}/access-requests/received", headers=auth_headers(seller)
        )
        assert [r["id"] for r in received.json()] == [request_id]

        await client.post(
            f"{API}/access-requests/{request_id}/approve", headers=auth_headers(seller)
        )
        resp = await client.post(
            f"{API}/access-requests/{request_id}/sign-nda", headers=auth_headers(buyer)
        )
        assert resp.status_code == 200
        assert resp.json()["nda_signed"] is True

    @pytest.mark.asyncio
    async def test_duplicate_request(self, client, listing, buyer, auth_headers) -> None:
        body = {"listing_id": str(listing.id)}
        await client.post(f"{API}/access-requests", json=body, headers=auth_headers(buyer))
        resp = await client.post(f"{API}/access-requests", json=body, headers=auth_headers(buyer))
        assert resp.status_code == 400
        assert resp.json()["code"] == "DUPLICATE_ACCESS_REQUEST"


class TestNotificationsApi:
    @pytest.mark.asyncio
    async def test_poll_and_mark_read(
        self, client, listing, buyer, seller, auth_headers
    ) -> None:
        await client.post(
            f"{API}/access-requests",
            json={"listing_id": str(listing.id)},
            headers=auth_headers(buyer),
        )

        resp = await client.get(
            f"{API}/notifications", params={"unread_only": True}, headers=auth_headers(seller)
        )
        mail = resp.json()
        assert [n["type"] for n in mail] == ["access_request"]

        resp = await client.post(
            f"{API}/notifications/{mail[0]['id']}/read", headers=auth_headers(buyer)
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "PERMISSION_DENIED"

        resp = await client.post(f"{API}/notifications/read-all", headers=auth_headers(seller))
        assert resp.json() == {"updated": 1}


class TestEscrowApi:
    @pytest.mark.asyncio
    async def test_status_lists_allowed_events(
        self, client, listing, buyer, seller, auth_headers
    ) -> None:
        resp = await client.post(
            "/functions/v1/initiate-payment",
            json={
                "listingId": str(listing.id),
                "sellerId": str(seller.id),
                "buyerId": str(buyer.id),
                "amount": "1000",
            },
            headers=auth_headers(buyer),
        )
        escrow_id = resp.json()["escrowId"]

        resp = await client.get(f"{API}/escrows/{escrow_id}/status", headers=auth_headers(seller))
        assert resp.json()["status"] == "initiated"
        assert set(resp.json()["allowed_events"]) == {
            "confirm_payment",
            "open_dispute",
            "cancel_escrow",
        }

        resp = await client.post(f"{API}/escrows/{escrow_id}/cancel", headers=auth_headers(buyer))
        assert resp.json()["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_stranger_cannot_read(
        self, client, listing, buyer, seller, other_buyer, auth_headers
    ) -> None:
        resp = await client.post(
            "/functions/v1/initiate-payment",
            json={
                "listingId": str(listing.id),
                "sellerId": str(seller.id),
                "buyerId": str(buyer.id),
                "amount": "1000",
            },
            headers=auth_headers(buyer),
        )
        resp = await client.get(
            f"{API}/escrows/{resp.json()['escrowId']}", headers=auth_headers(other_buyer)
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "PERMISSION_DENIED"


class TestKycApi:
    @pytest.mark.asyncio
    async def test_upload_and_review(self, client, buyer, admin, auth_headers) -> None:
        resp = await client.post(
            f"{API}/kyc/documents",
            data={"document_type": "passport"},
            files={"file": ("passport.pdf", b"%PDF-1.4 scan", "application/pdf")},
            headers=auth_headers(buyer),
        )
        assert resp.status_code == 201
        document = resp.json()
        assert document["status"] == "pending"
        assert document["file_path"].startswith(f"{buyer.id}/passport_")

        resp = await client.post(
            f"{API}/kyc/documents/{document['id']}/review",
            json={"approve": False},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400

        resp = await client.post(
            f"{API}/kyc/documents/{document['id']}/review",
            json={"approve": True},
            headers=auth_headers(admin),
        )
        assert resp.json()["status"] == "approved"

    @pytest.mark.asyncio
    async def test_rejects_unsupported_type(self, client, buyer, auth_headers) -> None:
        resp = await client.post(
            f"{API}/kyc/documents",
            data={"document_type": "passport"},
            files={"file": ("scan.gif", b"GIF89a", "image/gif")},
            headers=auth_headers(buyer),
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "DOCUMENT_REJECTED"


class TestMessagesAndProfileApi:
    @pytest.mark.asyncio
    async def test_message_and_inbox(self, client, buyer, seller, auth_headers) -> None:
        resp = await client.post(
            f"{API}/messages",
            json={"receiver_id": str(seller.id), "content": "Still available?"},
            headers=auth_headers(buyer),
        )
        assert resp.status_code == 201

        resp = await client.get(f"{API}/messages/conversations", headers=auth_headers(seller))
        inbox = resp.json()
        assert inbox[0]["partner_id"] == str(buyer.id)
        assert inbox[0]["unread_count"] == 1

    @pytest.mark.asyncio
    async def test_role_selection(self, client, buyer, auth_headers) -> None:
        resp = await client.put(
            f"{API}/me/roles", json={"roles": ["seller", "buyer"]}, headers=auth_headers(buyer)
        )
        assert resp.status_code == 200
        assert resp.json()["roles"] == ["buyer", "seller"]

        resp = await client.put(
            f"{API}/me/roles", json={"roles": ["admin"]}, headers=auth_headers(buyer)
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "PERMISSION_DENIED"


class TestWebhooksApi:
    async def _initiate(self, client, listing, buyer, seller, auth_headers) -> str:
        resp = await client.post(
            "/functions/v1/initiate-payment",
            json={
                "listingId": str(listing.id),
                "sellerId": str(seller.id),
                "buyerId": str(buyer.id),
                "amount": "1000",
            },
            headers=auth_headers(buyer),
        )
        return resp.json()["escrowId"]

    @pytest.mark.asyncio
    async def test_payment_callback_needs_secret(
        self, client, listing, buyer, seller, auth_headers
    ) -> None:
        escrow_id = await self._initiate(client, listing, buyer, seller, auth_headers)
        body = {"escrow_id": escrow_id, "payment_reference": "pi_forged"}

        for headers in (auth_headers(buyer), {"X-Webhook-Secret": "guessed"}):
            resp = await client.post(f"{API}/webhooks/payment", json=body, headers=headers)
            assert resp.status_code == 400
            assert resp.json()["code"] == "PERMISSION_DENIED"

        resp = await client.get(f"{API}/escrows/{escrow_id}", headers=auth_headers(buyer))
        assert resp.json()["status"] == "initiated"

    @pytest.mark.asyncio
    async def test_forged_signature_callback_cannot_unlock_release(
        self, client, listing, buyer, seller, auth_headers, webhook_headers
    ) -> None:
        escrow_id = await self._initiate(client, listing, buyer, seller, auth_headers)
        await client.post(
            f"{API}/webhooks/payment",
            json={"escrow_id": escrow_id, "payment_reference": "pi_real"},
            headers=webhook_headers,
        )
        resp = await client.post(
            "/functions/v1/create-agreement",
            json={"listingId": str(listing.id), "buyerId": str(buyer.id), "escrowId": escrow_id},
            headers=auth_headers(buyer),
        )
        envelope_id = resp.json()["envelope"]["envelope_id"]

        resp = await client.post(
            f"{API}/webhooks/signature",
            json={"envelope_id": envelope_id, "status": "completed"},
            headers=auth_headers(buyer),
        )
        assert resp.json()["code"] == "PERMISSION_DENIED"

        resp = await client.post(
            "/functions/v1/complete-escrow",
            json={"escrowId": escrow_id},
            headers=auth_headers(buyer),
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "AGREEMENT_NOT_COMPLETED"
