"""Shared constants used across the application."""

# Only HMAC-SHA256 is accepted; anything else in a token header is rejected.
SUPPORTED_ALGORITHM = "HS256"

# HS256 needs a key of at least 256 bits
MIN_SECRET_BYTES = 32

DEFAULT_ISSUER = "taskmanager-api"
DEFAULT_AUDIENCE = "taskmanager-clients"

PLACEHOLDER_SECRET = "CHANGE-ME-IN-PRODUCTION"

# Substrings that mark a secret as a demo/placeholder value (lower-cased match)
WEAK_SECRET_MARKERS = ("demo", "secret", "test", "change-me", "changeme", "example")

# Private claim names
CLAIM_TYPE = "type"
CLAIM_AUTHORITIES = "authorities"

BEARER_PREFIX = "Bearer "
