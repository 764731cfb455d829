"""Request/response bodies of the three server-callable functions.

Callers speak camelCase JSON (``listingId``, ``escrowId``); fields are
snake_case in Python and accepted under either name.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from igaming_exchange.schemas.marketplace import AgreementResponse


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InitiatePaymentRequest(_CamelModel):
    listing_id: uuid.UUID
    seller_id: uuid.UUID
    buyer_id: uuid.UUID
    amount: Decimal = Field(..., description="Purchase amount in major units; must be > 0")
    idempotency_key: str | None = Field(
        default=None,
        max_length=200,
        description="Repeat a call with the same key to get the original result back",
    )


class InitiatePaymentResponse(_CamelModel):
    url: str
    escrow_id: uuid.UUID


class CreateAgreementRequest(_CamelModel):
    listing_id: uuid.UUID
    buyer_id: uuid.UUID
    escrow_id: uuid.UUID | None = None


class CreateAgreementResponse(_CamelModel):
    envelope: AgreementResponse


class CompleteEscrowRequest(_CamelModel):
    escrow_id: uuid.UUID


class CompleteEscrowResponse(_CamelModel):
    success: bool = True
