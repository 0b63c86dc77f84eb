"""Deterministic seeds for word ordering."""
import struct

MAX_INT32 = 2147483647


def _to_int32(value: int) -> int:
    """Wrap an integer to signed 32-bit."""
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def hash_key_to_seed(key: str) -> int:
    """Map a string key to a stable positive integer.

    Classic ``hash * 31 + code`` rolling hash over UTF-16 code units with
    32-bit wraparound, so that the same key yields the same seed in any
    runtime that hashes strings this way. Never returns 0.
    """
    data = key.encode("utf-16-le")
    units = struct.unpack(f"<{len(data) // 2}H", data)

    hash_ = 0
    for unit in units:
        hash_ = _to_int32(hash_ * 31 + unit)
    return abs(hash_) or 1


def global_seed_key(day: str) -> str:
    """Seed key of the shared daily word."""
    return day


def user_seed_key(day: str, user_id: str, band: str) -> str:
    """Seed key of a personalized pick."""
    return f"{day}:{user_id}:{band}"


def order_key(word_id: int, seed: int) -> int:
    """Position of a word in the seeded ordering; smaller wins."""
    return (word_id * seed) % MAX_INT32
