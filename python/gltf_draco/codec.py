"""
Codec interface for Draco mesh and animation compression.

The compression passes never talk to a Draco binding directly. They receive an
explicitly constructed ``Codec`` and ask it for short-lived handles:

1. MeshEncoder - builds one mesh (faces + typed attributes) and encodes it
2. GeometryDecoder / DecodedGeometry - decodes one payload and exposes its data
3. AnimationEncoder - builds one keyframe timeline and encodes it

Every handle is a context manager; ``release()`` runs once on every exit path
so native resources never outlive the primitive being processed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Optional, Sequence

import numpy as np


class AttributeClass(IntEnum):
    """Draco geometry attribute classes (GeometryAttribute::Type)."""

    INVALID = -1
    POSITION = 0
    NORMAL = 1
    COLOR = 2
    TEX_COORD = 3
    GENERIC = 4


class GeometryKind(IntEnum):
    """Encoded geometry type stored in the Draco header."""

    INVALID = -1
    POINT_CLOUD = 0
    TRIANGULAR_MESH = 1


class EncodingMethod(IntEnum):
    MESH_SEQUENTIAL_ENCODING = 0
    MESH_EDGEBREAKER_ENCODING = 1


class DracoDataType(IntEnum):
    """Draco attribute data types (draco::DataType)."""

    INVALID = 0
    INT8 = 1
    UINT8 = 2
    INT16 = 3
    UINT16 = 4
    INT32 = 5
    UINT32 = 6
    INT64 = 7
    UINT64 = 8
    FLOAT32 = 9
    FLOAT64 = 10
    BOOL = 11


DRACO_MAGIC = b"DRACO"
"""First bytes of every Draco payload."""

_ENCODER_TYPE_OFFSET = 7  # magic(5) + major(1) + minor(1)


def read_geometry_kind(payload: bytes) -> GeometryKind:
    """
    Read the geometry kind from a Draco payload header.

    Args:
        payload: Compressed bytes

    Returns:
        GeometryKind, INVALID when the header is not a Draco header
    """
    if len(payload) <= _ENCODER_TYPE_OFFSET or not payload.startswith(DRACO_MAGIC):
        return GeometryKind.INVALID
    try:
        return GeometryKind(payload[_ENCODER_TYPE_OFFSET])
    except ValueError:
        return GeometryKind.INVALID


@dataclass
class EncodedMesh:
    """Result of encoding one mesh."""

    data: bytes
    num_points: int
    num_faces: int
    unique_ids: Dict[int, int] = field(default_factory=dict)
    """Map of id returned by an add-attribute call -> unique id stored in the payload.
    Ids missing from the map are stored unchanged."""

    def unique_id(self, attribute_id: int) -> int:
        return self.unique_ids.get(attribute_id, attribute_id)


@dataclass
class DecodeStatus:
    ok: bool
    error_msg: str = ""


@dataclass
class DecodedAttribute:
    """Description of one attribute in a decoded payload."""

    unique_id: int
    attribute_class: AttributeClass
    data_type: DracoDataType
    num_components: int


class CodecHandle(ABC):
    """A native resource scoped to one primitive or timeline."""

    _released: bool = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Free the native resource. Safe to call more than once."""
        if not self._released:
            self._released = True
            self._destroy()

    def _destroy(self) -> None:
        """Subclass hook that frees native memory."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


class MeshEncoder(CodecHandle):
    """Encoder plus mesh builder for one triangle mesh."""

    @abstractmethod
    def add_faces(self, faces: np.ndarray) -> None:
        """Add triangle faces as an (n, 3) uint32 array."""
        raise NotImplementedError

    @abstractmethod
    def _add_attribute(
        self,
        attribute_class: AttributeClass,
        num_points: int,
        num_components: int,
        data: np.ndarray,
    ) -> int:
        """Add a typed, flat attribute array. Returns its id or -1 on failure."""
        raise NotImplementedError

    def add_int8_attribute(self, attribute_class, num_points, num_components, data) -> int:
        return self._add_attribute(attribute_class, num_points, num_components, np.asarray(data, dtype=np.int8))

    def add_uint8_attribute(self, attribute_class, num_points, num_components, data) -> int:
        return self._add_attribute(attribute_class, num_points, num_components, np.asarray(data, dtype=np.uint8))

    def add_int16_attribute(self, attribute_class, num_points, num_components, data) -> int:
        return self._add_attribute(attribute_class, num_points, num_components, np.asarray(data, dtype=np.int16))

    def add_uint16_attribute(self, attribute_class, num_points, num_components, data) -> int:
        return self._add_attribute(attribute_class, num_points, num_components, np.asarray(data, dtype=np.uint16))

    def add_int32_attribute(self, attribute_class, num_points, num_components, data) -> int:
        return self._add_attribute(attribute_class, num_points, num_components, np.asarray(data, dtype=np.int32))

    def add_uint32_attribute(self, attribute_class, num_points, num_components, data) -> int:
        return self._add_attribute(attribute_class, num_points, num_components, np.asarray(data, dtype=np.uint32))

    def add_float_attribute(self, attribute_class, num_points, num_components, data) -> int:
        return self._add_attribute(attribute_class, num_points, num_components, np.asarray(data, dtype=np.float32))

    @abstractmethod
    def set_speed_options(self, encoding_speed: int, decoding_speed: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_attribute_quantization(self, attribute_class: AttributeClass, bits: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_attribute_explicit_quantization(
        self,
        attribute_class: AttributeClass,
        bits: int,
        num_components: int,
        origin: Sequence[float],
        range_: float,
    ) -> None:
        """Quantize against a fixed origin and cube size instead of the local data range."""
        raise NotImplementedError

    @abstractmethod
    def set_encoding_method(self, method: EncodingMethod) -> None:
        raise NotImplementedError

    @abstractmethod
    def encode(self) -> EncodedMesh:
        """Encode the mesh. An empty ``data`` means the encode failed."""
        raise NotImplementedError


class DecodedGeometry(CodecHandle):
    """A decoded mesh or point cloud."""

    status: DecodeStatus
    num_points: int
    num_faces: int

    @abstractmethod
    def faces(self) -> np.ndarray:
        """Get faces as an (num_faces, 3) array, in face order."""
        raise NotImplementedError

    @abstractmethod
    def attribute_id(self, attribute_class: AttributeClass) -> int:
        """Get the id of the first attribute of a class, or -1."""
        raise NotImplementedError

    @abstractmethod
    def attribute_by_unique_id(self, unique_id: int) -> Optional[DecodedAttribute]:
        raise NotImplementedError

    @abstractmethod
    def _attribute_values(self, attribute: DecodedAttribute) -> np.ndarray:
        """Get ``num_points * num_components`` values of an attribute."""
        raise NotImplementedError

    def get_attribute_int8_for_all_points(self, attribute: DecodedAttribute) -> np.ndarray:
        return np.asarray(self._attribute_values(attribute), dtype=np.int8).reshape(-1)

    def get_attribute_uint8_for_all_points(self, attribute: DecodedAttribute) -> np.ndarray:
        return np.asarray(self._attribute_values(attribute), dtype=np.uint8).reshape(-1)

    def get_attribute_int16_for_all_points(self, attribute: DecodedAttribute) -> np.ndarray:
        return np.asarray(self._attribute_values(attribute), dtype=np.int16).reshape(-1)

    def get_attribute_uint16_for_all_points(self, attribute: DecodedAttribute) -> np.ndarray:
        return np.asarray(self._attribute_values(attribute), dtype=np.uint16).reshape(-1)

    def get_attribute_int32_for_all_points(self, attribute: DecodedAttribute) -> np.ndarray:
        return np.asarray(self._attribute_values(attribute), dtype=np.int32).reshape(-1)

    def get_attribute_uint32_for_all_points(self, attribute: DecodedAttribute) -> np.ndarray:
        return np.asarray(self._attribute_values(attribute), dtype=np.uint32).reshape(-1)

    def get_attribute_float_for_all_points(self, attribute: DecodedAttribute) -> np.ndarray:
        return np.asarray(self._attribute_values(attribute), dtype=np.float32).reshape(-1)


class GeometryDecoder(CodecHandle):
    """Decoder for mesh and point cloud payloads."""

    def geometry_kind(self, payload: bytes) -> GeometryKind:
        return read_geometry_kind(payload)

    @abstractmethod
    def decode(self, payload: bytes, kind: GeometryKind) -> DecodedGeometry:
        """Decode a payload. Failures are reported through ``status``, not raised."""
        raise NotImplementedError


class AnimationEncoder(CodecHandle):
    """Encoder plus builder for one keyframe timeline."""

    @abstractmethod
    def set_timestamps(self, timestamps: np.ndarray) -> None:
        raise NotImplementedError

    @abstractmethod
    def add_keyframes(self, num_components: int, data: np.ndarray) -> int:
        """Add one keyframe attribute. Ids start at 1 (0 holds the timestamps)."""
        raise NotImplementedError

    @abstractmethod
    def set_timestamps_quantization(self, bits: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_keyframes_quantization(self, bits: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def encode(self) -> bytes:
        raise NotImplementedError


class Codec(ABC):
    """
    Explicit codec context.

    Create one per pipeline run and close it at the end, typically with
    ``with SomeCodec() as codec: ...``. Handles it creates are scoped to a
    single primitive or timeline.
    """

    _closed: bool = False

    @abstractmethod
    def create_mesh_encoder(self) -> MeshEncoder:
        raise NotImplementedError

    @abstractmethod
    def create_decoder(self) -> GeometryDecoder:
        raise NotImplementedError

    @abstractmethod
    def create_animation_encoder(self) -> AnimationEncoder:
        raise NotImplementedError

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

