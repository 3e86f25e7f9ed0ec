"""Utility modules."""

from tote_engine.utils.datetime_utils import ensure_utc, start_of_day, utc_now
from tote_engine.utils.normalization import (
    mask_phone,
    normalize_email,
    normalize_name,
    normalize_phone,
)
from tote_engine.utils.pagination import (
    PaginationParams,
    get_pagination,
    page_count,
)

__all__ = [
    # Normalization
    "mask_phone",
    "normalize_email",
    "normalize_name",
    "normalize_phone",
    # Datetime
    "ensure_utc",
    "start_of_day",
    "utc_now",
    # Pagination
    "PaginationParams",
    "get_pagination",
    "page_count",
]
