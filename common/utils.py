"""Shared utility functions used across all apps."""

import secrets

BASE62_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


def generate_token_path(nbytes=16):
    """
    Generate an unguessable, URL-safe base62 handle.

    Args:
        nbytes: Bytes of randomness (16 gives 128 bits).

    Returns:
        String like "3kTMd9yQe0bZ1xw8rVn2Lp"
    """
    n = int.from_bytes(secrets.token_bytes(nbytes), "big")
    out = []
    while n:
        n, r = divmod(n, 62)
        out.append(BASE62_ALPHABET[r])
    return "".join(reversed(out)) or "0"


def generate_storage_name(prefix):
    """
    Generate a storage-layer name under ``prefix``.

    The name is random so that two upload attempts against the same token
    never share a blob path.
    """
    return f"{prefix}/{secrets.token_hex(16)}"
