"""Tests for PII-safe logging helpers."""

from tote_engine.core.structured_logging import build_log_context, mask_email


def test_mask_email_hides_address():
    masked = mask_email("ana.lopez@gmail.com")

    assert masked.startswith("ana...@[hash:")
    assert "gmail.com" not in masked
    assert "lopez" not in masked


def test_mask_email_is_stable_and_case_insensitive():
    assert mask_email("ana@gmail.com") == mask_email("ana@gmail.com")
    assert mask_email("ANA@gmail.com").split("[hash:")[1] == mask_email("ana@gmail.com").split("[hash:")[1]


def test_mask_email_empty():
    assert mask_email(None) == ""
    assert mask_email("") == ""


def test_build_log_context_masks_email_and_drops_empty_fields():
    context = build_log_context(cause_id="c1", claim_id=None, email="ana@gmail.com", route="/claims")

    assert context == {"cause_id": "c1", "email": mask_email("ana@gmail.com"), "route": "/claims"}
