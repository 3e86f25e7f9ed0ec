"""Structured logging helpers (PII-safe)."""

import hashlib
from typing import Any


def mask_email(email: str | None) -> str:
    """Mask an email for logs (prefix + SHA256 suffix for debugging)."""
    if not email:
        return ""
    prefix = email.split("@")[0][:3] if "@" in email else email[:3]
    suffix = hashlib.sha256(email.lower().encode()).hexdigest()[:12]
    return f"{prefix}...@[hash:{suffix}]"


def build_log_context(
    *,
    cause_id: str | None = None,
    claim_id: str | None = None,
    entry_id: str | None = None,
    email: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict."""
    context: dict[str, Any] = {}
    if cause_id:
        context["cause_id"] = cause_id
    if claim_id:
        context["claim_id"] = claim_id
    if entry_id:
        context["entry_id"] = entry_id
    if email:
        context["email"] = mask_email(email)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
