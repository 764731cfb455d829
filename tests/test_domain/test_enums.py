"""Tests for domain enumerations."""

from __future__ import annotations

from igaming_exchange.domain.enums import (
    AgreementStatus,
    EscrowStatus,
    ListingStatus,
    NotificationType,
    UserRole,
)


class TestEscrowStatus:
    def test_all_statuses_exist(self) -> None:
        expected = {"initiated", "funded", "completed", "disputed", "cancelled"}
        actual = {s.value for s in EscrowStatus}
        assert actual == expected

    def test_status_is_str_enum(self) -> None:
        assert isinstance(EscrowStatus.FUNDED, str)
        assert EscrowStatus.FUNDED == "funded"


class TestAgreementStatus:
    def test_all_statuses_exist(self) -> None:
        expected = {"sent", "delivered", "completed", "declined", "voided"}
        assert {s.value for s in AgreementStatus} == expected


class TestListingStatus:
    def test_all_statuses_exist(self) -> None:
        expected = {"draft", "pending", "approved", "live", "sold"}
        assert {s.value for s in ListingStatus} == expected


class TestUserRole:
    def test_closed_role_set(self) -> None:
        assert {r.value for r in UserRole} == {"buyer", "seller", "admin"}


class TestNotificationType:
    def test_completion_types(self) -> None:
        assert NotificationType.TRANSACTION_COMPLETED == "transaction_completed"
        assert NotificationType.PAYMENT_RECEIVED == "payment_received"

    def test_agreement_types(self) -> None:
        assert NotificationType.DOCUMENT_READY == "document_ready"
        assert NotificationType.AGREEMENT_UPDATED == "agreement_updated"
