import hashlib
import hmac
from typing import Optional

DEFAULT_ALGORITHM = "HMAC-SHA256"


def parse_signature_header(header: str) -> dict:
    """Split an ``x-signature`` header such as ``ts=1704908010,v1=618c85...`` into its parts."""
    parts = {}
    for chunk in header.split(","):
        if "=" not in chunk:
            continue
        key, value = chunk.split("=", 1)
        parts[key.strip().lower()] = value.strip()
    return parts


def normalize_algorithm(name: Optional[str]) -> Optional[str]:
    """Map an embedded algorithm name (``HMAC-SHA256``) to its hashlib name (``sha256``)."""
    normalized = (name or DEFAULT_ALGORITHM).strip().lower()
    if normalized.startswith(("hmac-", "hmac_")):
        normalized = normalized[5:]
    for candidate in (normalized, normalized.replace("-", ""), normalized.replace("-", "_")):
        if candidate in hashlib.algorithms_available:
            return candidate
    return None


def verify_signature(
    header: Optional[str],
    raw_body: bytes,
    secret: Optional[str],
    data_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> bool:
    if not header or not secret:
        return False

    parts = parse_signature_header(header)
    received = parts.get("v1")
    algorithm = normalize_algorithm(parts.get("alg"))
    if not received or algorithm is None:
        return False

    candidates = [raw_body]
    ts = parts.get("ts")
    if data_id and request_id and ts:
        candidates.append(f"id:{data_id};request-id:{request_id};ts:{ts};".encode())

    key = secret.encode()
    for message in candidates:
        expected = hmac.new(key, message, algorithm).hexdigest()
        if hmac.compare_digest(expected, received.lower()):
            return True
    return False
