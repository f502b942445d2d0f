"""Hash calculation utilities"""

import hashlib
import hmac
from typing import Optional


def calculate_content_hash(content: bytes, algorithm: str = "sha256") -> str:
    """
    Calculate hash of content bytes

    Args:
        content: Content bytes
        algorithm: Hash algorithm

    Returns:
        Hex digest string
    """
    hash_func = hashlib.new(algorithm)
    hash_func.update(content)
    return hash_func.hexdigest()


def calculate_string_hash(text: str,
                          algorithm: str = "sha256",
                          encoding: str = "utf-8") -> str:
    """
    Calculate hash of string

    Args:
        text: Text string
        algorithm: Hash algorithm
        encoding: Text encoding

    Returns:
        Hex digest string
    """
    return calculate_content_hash(text.encode(encoding), algorithm)


def calculate_hmac(content: bytes, key: str, algorithm: str = "sha256") -> str:
    """
    Calculate keyed HMAC of content bytes

    Args:
        content: Content bytes
        key: Secret key
        algorithm: Hash algorithm

    Returns:
        Hex digest string
    """
    return hmac.new(key.encode("utf-8"), content, algorithm).hexdigest()


def keyed_string_hash(text: str, key: Optional[str] = None) -> str:
    """HMAC-SHA256 of a string when a key is given, plain SHA-256 otherwise"""
    if key:
        return calculate_hmac(text.encode("utf-8"), key)
    return calculate_string_hash(text)


def digests_equal(left: Optional[str], right: Optional[str]) -> bool:
    """Constant-time comparison of two hex digests"""
    if not left or not right:
        return False
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))
