"""Errors raised by the compression passes.

Configuration errors are reported by pydantic (``ValidationError``) when the
option models are built, before any asset is touched.
"""


class DracoPipelineError(RuntimeError):
    """Base class for fatal errors that abort a pass."""


class StructuralError(DracoPipelineError):
    """The asset references something that does not exist or is malformed."""


class UnsupportedAttributeTypeError(StructuralError):
    """An accessor or codec attribute uses a numeric type with no mapping."""


class CodecError(DracoPipelineError):
    """The codec failed to encode or decode a payload."""


class ConsistencyError(DracoPipelineError):
    """Accessor usage is ambiguous, e.g. one accessor shared by two timelines."""


class AssetFormatError(DracoPipelineError):
    """A .gltf or .glb file cannot be read or written."""
