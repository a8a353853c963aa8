"""
trustbadge.client — Python SDK for a trustbadge issuer.

Usage:
    from trustbadge.client import BadgeClient

    with BadgeClient("http://localhost:8000", api_key="...") as client:
        issued = client.generate("user-42")
        check = client.verify(issued["badge"])
        offline = client.verify_offline(issued["badge"])
"""

from __future__ import annotations

import httpx
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from trustbadge.models import VerificationResult
from trustbadge.portable import PortableBadge, verify_offline


class BadgeClientError(Exception):
    """Raised when the issuer API returns an error."""
    def __init__(self, status: int, detail):
        self.status = status
        self.detail = detail
        super().__init__(f"[{status}] {detail}")


BadgeLike = Union[PortableBadge, dict]


@dataclass
class BadgeClient:
    """Lightweight client for the trustbadge HTTP API."""

    base_url: str = "http://localhost:8000"
    api_key: str = ""
    platform_id: str = ""
    timeout: float = 10.0
    _http: httpx.Client = field(init=False, repr=False)
    _public_key: Optional[dict] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        headers = {}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        if self.platform_id:
            headers["X-Platform-ID"] = self.platform_id
        self._http = httpx.Client(base_url=self.base_url, timeout=self.timeout, headers=headers)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # -- internal --

    def _request(self, method: str, path: str, **kwargs) -> dict:
        r = self._http.request(method, path, **kwargs)
        if r.status_code >= 400:
            detail = r.json().get("detail", r.text) if r.headers.get("content-type", "").startswith("application/json") else r.text
            raise BadgeClientError(r.status_code, detail)
        return r.json()

    @staticmethod
    def _wire(badge: BadgeLike) -> dict:
        return badge.to_dict() if isinstance(badge, PortableBadge) else badge

    # -- Issuer key --

    def get_public_key(self, refresh: bool = False) -> dict:
        """Issuer key descriptor {key_id, public_key, algorithm}. Cached after the first call."""
        if self._public_key is None or refresh:
            self._public_key = self._request("GET", "/api/badges/public-key")
        return self._public_key

    # -- Badges --

    def generate(self, subject_id: str) -> dict:
        """Issue a badge for a subject. Requires an API key."""
        return self._request("POST", "/api/badges/generate", json={"subject_id": subject_id})

    def verify(self, badge: BadgeLike) -> dict:
        """Online verification: signature, expiry and revocation, checked by the issuer."""
        wire = self._wire(badge)
        return self._request("POST", "/api/badges/verify", json={
            "badge_token": wire["badge_token"],
            "payload": wire["payload"],
            "signature": wire["signature"],
        })

    def verify_offline(self, badge: BadgeLike, now: Optional[datetime] = None) -> VerificationResult:
        """Signature and expiry only, against the cached issuer key.

        The key is refetched once if the badge names a key id the cache does not hold.
        """
        wire = self._wire(badge)
        key = self.get_public_key()
        if wire.get("public_key_id") != key["key_id"]:
            key = self.get_public_key(refresh=True)
        return verify_offline(wire, key["public_key"], now=now)

    def revoke(self, badge_token: str, reason: Optional[str] = None) -> dict:
        payload: dict = {"badge_token": badge_token}
        if reason:
            payload["reason"] = reason
        return self._request("POST", "/api/badges/revoke", json=payload)

    def revoke_all(self, subject_id: str, reason: Optional[str] = None) -> dict:
        return self._request("POST", f"/api/badges/subjects/{subject_id}/revoke-all",
                             json={"reason": reason})

    def list_badges(self, subject_id: str) -> dict:
        """Active badges for a subject, newest first."""
        return self._request("GET", f"/api/badges/subjects/{subject_id}")

    def score(self, subject_id: str) -> dict:
        """Current score, breakdown and clearance tier."""
        return self._request("GET", f"/api/badges/subjects/{subject_id}/score")

    # -- Health --

    def health(self) -> dict:
        return self._request("GET", "/health")
