"""
ID generation utilities.
"""

import secrets


def generate_id(length: int = 12) -> str:
    """
    Generate a cryptographically random hex ID.

    Hex keeps IDs safe inside the ``<!--key:value,...-->`` metadata comment
    (no commas, colons or dashes) and inside file names.

    Args:
        length: Length of the ID in hex characters (default 12)

    Returns:
        Lowercase hex string, e.g. "a7f3c2b4e901"
    """
    return secrets.token_hex((length + 1) // 2)[:length]


def generate_unique_id(existing, length: int = 12) -> str:
    """Generate an ID not present in ``existing`` (any container supporting ``in``)."""
    new_id = generate_id(length)
    while new_id in existing:
        new_id = generate_id(length)
    return new_id
