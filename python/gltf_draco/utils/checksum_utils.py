"""Checksum utilities for hashing canonical JSON and bytes."""

import hashlib
import json
from typing import Any, Dict


class ChecksumUtils:
    """Utility class for computing checksums."""

    @staticmethod
    def compute_bytes_checksum(data: bytes) -> str:
        """Compute SHA256 checksum for bytes.

        Args:
            data: Bytes to hash

        Returns:
            Hex SHA256 digest
        """
        return hashlib.sha256(data).hexdigest()

    @staticmethod
    def canonical_json(data: Dict[str, Any]) -> str:
        """Serialize a dict with sorted keys and no insignificant whitespace."""
        return json.dumps(data, sort_keys=True, separators=(",", ":"))

    @staticmethod
    def compute_dict_checksum(data: Dict[str, Any]) -> str:
        """Compute checksum of a JSON-serializable dict.

        Key order does not affect the result.

        Args:
            data: JSON-serializable dict

        Returns:
            Hex SHA256 digest of the canonical JSON
        """
        return ChecksumUtils.compute_bytes_checksum(
            ChecksumUtils.canonical_json(data).encode("utf-8"))
