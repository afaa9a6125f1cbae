from __future__ import annotations

from typing import Any, Optional

import httpx

from ..config import settings
from ..models import Lease


class DocumentServiceError(RuntimeError):
    pass


def _lease_payload(lease: Lease) -> dict[str, Any]:
    return {
        "lease_id": lease.id,
        "org_id": lease.org_id,
        "unit_id": lease.unit_id,
        "tenant_id": lease.tenant_id,
        "start_date": lease.start_date.isoformat(),
        "end_date": lease.end_date.isoformat(),
        "rent_amount": lease.rent_amount,
        "deposit_amount": lease.deposit_amount,
        "payment_day": lease.payment_day,
        "payment_frequency": lease.payment_frequency,
        "currency": settings.default_currency,
        "renewed_from_lease_id": lease.renewed_from_lease_id,
    }


class LeaseDocumentGenerator:
    """
    Renders a lease agreement through the external document service and
    returns the stored document's URL.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.base = (base_url if base_url is not None else settings.document_service_url or "").rstrip("/")
        self.token = token if token is not None else settings.document_service_token
        self.timeout = timeout if timeout is not None else settings.document_service_timeout_seconds

    def enabled(self) -> bool:
        return bool(self.base)

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def generate(self, lease: Lease) -> str:
        if not self.enabled():
            raise DocumentServiceError("document_service_url not set")

        url = f"{self.base}/leases/{lease.id}/documents"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                r = client.post(url, headers=self._headers(), json=_lease_payload(lease))
                r.raise_for_status()
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DocumentServiceError(f"document service call failed: {e}") from e

        doc_url = data.get("url") if isinstance(data, dict) else None
        if not doc_url:
            raise DocumentServiceError("document service response missing url")
        return str(doc_url)
