"""
Export ID generation.

Used to correlate the log lines of a single export request.
"""
import uuid


def generate_short_id() -> str:
    """
    Generate a short unique ID (first 8 characters of a UUID4).

    Collision probability is higher than a full UUID, which is fine for
    log correlation.

    Returns:
        8-character hex string (e.g., "550e8400")
    """
    return uuid.uuid4().hex[:8]
