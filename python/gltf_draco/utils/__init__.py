"""
Utility modules for gltf_draco.

This package contains utility functions for accessor reading, checksums and
debug exports.
"""

from .accessor_utils import AccessorUtils
from .checksum_utils import ChecksumUtils
from .debug_export import DebugExportUtils

__all__ = [
    "AccessorUtils",
    "ChecksumUtils",
    "DebugExportUtils",
]
