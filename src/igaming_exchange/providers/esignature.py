"""E-signature provider — purchase-agreement envelopes.

The marketplace does not drive a live DocuSign account: envelopes are
synthesized locally with one signing link per party. With credentials
required (esign_simulate=False) the provider refuses to issue envelopes
until the DocuSign keys are configured, so a misconfigured deployment fails
before any agreement row is written.

Envelope ids look like ``envelope_1718000000000_k3j9x0a2b``: creation time in
milliseconds plus nine random base-36 characters.
"""

from __future__ import annotations

import secrets
import string
import time

from igaming_exchange.config import get_settings
from igaming_exchange.domain.exceptions import ProviderMisconfiguredError
from igaming_exchange.domain.provider_protocol import EnvelopeDraft
from igaming_exchange.logging_config import get_logger

logger = get_logger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def new_envelope_id() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"envelope_{int(time.time() * 1000)}_{suffix}"


class DocuSignDemoProvider:
    """Signature provider that fabricates envelopes and per-party URLs."""

    def __init__(
        self,
        require_credentials: bool | None = None,
        signing_base_url: str | None = None,
    ) -> None:
        settings = get_settings()
        self._require_credentials = (
            require_credentials if require_credentials is not None else not settings.esign_simulate
        )
        self._signing_base_url = (signing_base_url or settings.esign_signing_base_url).rstrip("/")

    def ensure_configured(self) -> None:
        if self._require_credentials and not get_settings().docusign_configured:
            raise ProviderMisconfiguredError("DocuSign")

    async def create_envelope(
        self,
        listing_title: str,
        buyer_email: str,
        seller_email: str,
    ) -> EnvelopeDraft:
        self.ensure_configured()
        envelope_id = new_envelope_id()
        draft = EnvelopeDraft(
            envelope_id=envelope_id,
            signing_url_buyer=f"{self._signing_base_url}/{envelope_id}/buyer",
            signing_url_seller=f"{self._signing_base_url}/{envelope_id}/seller",
        )
        logger.info("esign.envelope_created", envelope_id=envelope_id, listing=listing_title)
        return draft
