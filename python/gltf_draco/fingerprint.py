"""
Primitive fingerprints for deduplication.

Two primitives with the same attribute map, index accessor and mode share
geometry, so only the first is encoded; the others reuse its result.
"""

from typing import Dict, Generic, Optional, TypeVar

from .asset import Primitive
from .utils.checksum_utils import ChecksumUtils

T = TypeVar("T")


class PrimitiveFingerprint:
    """Canonical hash of a primitive's geometry references."""

    @staticmethod
    def geometry_key(primitive: Primitive) -> dict:
        return {
            "attributes": dict(primitive.attributes),
            "indices": primitive.indices,
            "mode": primitive.mode,
        }

    @staticmethod
    def compute(primitive: Primitive) -> str:
        """
        Compute the fingerprint of a primitive.

        Attribute insertion order does not matter.

        Args:
            primitive: Primitive to hash

        Returns:
            Hex SHA256 digest
        """
        return ChecksumUtils.compute_dict_checksum(PrimitiveFingerprint.geometry_key(primitive))

    @staticmethod
    def compute_compressed(primitive: Primitive) -> str:
        """Fingerprint of a compressed primitive, including its payload and attribute map."""
        record = primitive.draco_extension
        key = PrimitiveFingerprint.geometry_key(primitive)
        key["draco"] = {
            "bufferView": record.buffer_view if record is not None else None,
            "attributes": dict(record.attributes) if record is not None else {},
        }
        return ChecksumUtils.compute_dict_checksum(key)


class PrimitiveCache(Generic[T]):
    """Fingerprint -> result of processing the first primitive with that fingerprint."""

    def __init__(self):
        self._entries: Dict[str, T] = {}
        self.hits = 0

    def get(self, fingerprint: str) -> Optional[T]:
        entry = self._entries.get(fingerprint)
        if entry is not None:
            self.hits += 1
        return entry

    def put(self, fingerprint: str, entry: T) -> None:
        self._entries[fingerprint] = entry

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self._entries

    def __len__(self) -> int:
        return len(self._entries)
