"""
sqsd.signing — Request body signatures.

The signature is the lowercase hex HMAC-SHA256 of the exact body bytes,
keyed by the configured secret. Receivers verify it by recomputing the
digest over the raw request body.
"""

import hashlib
import hmac


def sign_body(body: bytes, secret_key: bytes) -> str:
    return hmac.new(secret_key, body, hashlib.sha256).hexdigest()
