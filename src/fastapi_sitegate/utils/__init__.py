"""Utility functions: host normalisation, credential checks, and DB dialects."""

from fastapi_sitegate.utils.db_compat import DbDialect, detect_dialect
from fastapi_sitegate.utils.security import (
    constant_time_compare,
    generate_bypass_token,
    mask_sensitive_data,
    matches_any_token,
)
from fastapi_sitegate.utils.validation import (
    DEFAULT_LOOPBACK_HOSTS,
    normalize_domain,
    split_host_port,
    validate_hostname,
)

__all__ = [
    # DB compatibility
    "DbDialect",
    "detect_dialect",
    # Security
    "constant_time_compare",
    "generate_bypass_token",
    "mask_sensitive_data",
    "matches_any_token",
    # Validation
    "DEFAULT_LOOPBACK_HOSTS",
    "normalize_domain",
    "split_host_port",
    "validate_hostname",
]
