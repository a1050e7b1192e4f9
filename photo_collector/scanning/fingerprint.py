"""
Change-detection digest over a photo's tracked metadata.

This is not a security hash. It only has to say "same metadata" or
"different metadata" between two runs, so a fast 64-bit FNV-1a is enough.
"""
from typing import Iterable

from .. import config

FNV64_OFFSET_BASIS = 0xcbf29ce484222325
FNV64_PRIME = 0x100000001b3
_MASK64 = 0xffffffffffffffff


def fnv1a_64(data: bytes) -> int:
    h = FNV64_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * FNV64_PRIME) & _MASK64
    return h


def _sci(value: float) -> str:
    return format(float(value), '.15E')


def _joined(values: Iterable[str]) -> str:
    # Sorted so that tag order in the file does not count as a change
    return ",".join(sorted(values))


def fingerprint_text(photo) -> str:
    """
    Builds the canonical text the digest is computed over.
    Field order is fixed; changing it invalidates every stored fingerprint.
    """
    fields = [
        photo.full_path,
        photo.file_name,
        photo.lens_make,
        photo.lens_model,
        photo.make,
        photo.model,
        _joined(photo.keywords),
        _joined(photo.people),
        photo.caption,
        photo.title,
        _sci(photo.latitude),
        _sci(photo.longitude),
        str(int(photo.width)),
        str(int(photo.height)),
    ]
    return config.FINGERPRINT_SEPARATOR.join(fields)


def compute_fingerprint(photo) -> str:
    """Returns the unsigned decimal FNV-1a 64 digest for a photo-like object."""
    return str(fnv1a_64(fingerprint_text(photo).encode('utf-8')))
