"""
Codec implementation backed by DracoPy.

DracoPy encodes a mesh from whole arrays in one call, so the encoder here
collects faces and attributes and defers all work to ``encode()``. The first
position, normal, texture coordinate and 8-bit color attributes go into
DracoPy's named slots; every other attribute (tangents, joints, weights,
extra sets) is stored as a generic attribute under an explicit unique id.
Unique ids written to the glTF record are read back from the payload, since
DracoPy numbers its named slots itself. DracoPy has no keyframe animation
encoder.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import DracoPy
import numpy as np

from .attribute_types import AttributeTypeUtils
from .codec import (
    AnimationEncoder,
    AttributeClass,
    Codec,
    DecodedAttribute,
    DecodedGeometry,
    DecodeStatus,
    EncodedMesh,
    EncodingMethod,
    GeometryDecoder,
    GeometryKind,
    MeshEncoder,
)
from .errors import CodecError

logger = logging.getLogger(__name__)

# DracoPy keyword for each named slot
_DRACOPY_KEYWORDS = {
    AttributeClass.NORMAL: "normals",
    AttributeClass.TEX_COORD: "tex_coord",
    AttributeClass.COLOR: "colors",
}

_DRACOPY_BITS_KEYWORDS = {
    AttributeClass.NORMAL: "normal_quantization_bits",
    AttributeClass.TEX_COORD: "tex_coord_quantization_bits",
}

# Named slots take at most ids 0..3, generic attributes are numbered after them
_FIRST_GENERIC_ID = 4


def _entry_field(entry: Any, name: str) -> Any:
    """Read a field of a decoded attribute entry, a dict or an object."""
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


def _entry_class(entry: Any) -> AttributeClass:
    attribute_type = _entry_field(entry, "attribute_type")
    if isinstance(attribute_type, str):
        return AttributeClass[attribute_type.upper()]
    return AttributeClass(int(attribute_type))


def _payload_unique_ids(decoded) -> List[Tuple[AttributeClass, int]]:
    """List (class, unique id) of every attribute in a decoded payload, in payload order."""
    return [(_entry_class(entry), int(_entry_field(entry, "unique_id")))
            for entry in getattr(decoded, "attributes", None) or []]


def _decoded_values(values, num_points: int) -> np.ndarray:
    """Shape decoded data per point, narrowing to types a glTF accessor can hold."""
    values = np.asarray(values).reshape(num_points, -1)
    if values.dtype.kind == "f":
        return values.astype(np.float32)
    if values.dtype == np.int64:
        return values.astype(np.int32)
    if values.dtype == np.uint64:
        return values.astype(np.uint32)
    return values


class DracoPyMeshEncoder(MeshEncoder):
    """Collects one mesh and encodes it with ``DracoPy.encode``."""

    def __init__(self):
        self._faces: Optional[np.ndarray] = None
        self._attributes: List[Tuple[AttributeClass, np.ndarray]] = []
        # class -> attribute id, for attributes held in a named slot
        self._named: Dict[AttributeClass, int] = {}
        # attribute id -> unique id requested for a generic attribute
        self._generic_ids: Dict[int, int] = {}
        self._speed = 3
        self._bits: Dict[AttributeClass, int] = {}
        self._explicit: Optional[Tuple[List[float], float]] = None
        self._method = EncodingMethod.MESH_EDGEBREAKER_ENCODING

    def add_faces(self, faces: np.ndarray) -> None:
        self._faces = np.asarray(faces, dtype=np.uint32).reshape(-1, 3)

    def _takes_named_slot(self, attribute_class: AttributeClass, num_components: int, values: np.ndarray) -> bool:
        if attribute_class in self._named:
            return False
        if attribute_class == AttributeClass.NORMAL:
            return num_components == 3
        if attribute_class == AttributeClass.COLOR:
            return values.dtype == np.uint8
        return attribute_class == AttributeClass.TEX_COORD

    def _add_attribute(self, attribute_class, num_points, num_components, data) -> int:
        if attribute_class == AttributeClass.INVALID:
            return -1
        values = data.reshape(num_points, num_components)
        attribute_id = len(self._attributes)

        if attribute_class == AttributeClass.POSITION:
            if num_components != 3 or AttributeClass.POSITION in self._named:
                logger.debug(f"DracoPy stores a single 3 component position, got {num_components} components")
                return -1
            self._named[attribute_class] = attribute_id
            values = values.astype(np.float32)
        elif self._takes_named_slot(attribute_class, num_components, values):
            self._named[attribute_class] = attribute_id
            if attribute_class != AttributeClass.COLOR:
                # DracoPy only accepts float64 normals and texture coordinates
                values = values.astype(np.float64)
        else:
            self._generic_ids[attribute_id] = _FIRST_GENERIC_ID + len(self._generic_ids)
            logger.debug(f"Storing {attribute_class.name} attribute {attribute_id} as generic")

        self._attributes.append((attribute_class, values))
        return attribute_id

    def set_speed_options(self, encoding_speed: int, decoding_speed: int) -> None:
        self._speed = encoding_speed

    def set_attribute_quantization(self, attribute_class, bits) -> None:
        self._bits[attribute_class] = bits

    def set_attribute_explicit_quantization(self, attribute_class, bits, num_components, origin, range_) -> None:
        if attribute_class != AttributeClass.POSITION:
            raise CodecError("DracoPy supports explicit quantization for positions only")
        self._bits[attribute_class] = bits
        self._explicit = (list(origin), float(range_))

    def set_encoding_method(self, method: EncodingMethod) -> None:
        self._method = method

    def _encode_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        for attribute_class, attribute_id in self._named.items():
            if attribute_class in _DRACOPY_KEYWORDS:
                kwargs[_DRACOPY_KEYWORDS[attribute_class]] = self._attributes[attribute_id][1]
            bits = self._bits.get(attribute_class, 0)
            if attribute_class in _DRACOPY_BITS_KEYWORDS and bits > 0:
                kwargs[_DRACOPY_BITS_KEYWORDS[attribute_class]] = bits
        if self._generic_ids:
            kwargs["generic_attributes"] = {
                unique_id: self._attributes[attribute_id][1]
                for attribute_id, unique_id in self._generic_ids.items()
            }
            if self._bits.get(AttributeClass.GENERIC, 0) > 0:
                logger.debug("DracoPy stores generic attributes without quantization")
        if self._explicit is not None:
            kwargs["quantization_origin"] = self._explicit[0]
            kwargs["quantization_range"] = self._explicit[1]
        return kwargs

    def _unique_ids(self, decoded) -> Dict[int, int]:
        """Map attribute ids to the unique ids DracoPy actually wrote."""
        named: Dict[AttributeClass, int] = {}
        generic: List[int] = []
        for attribute_class, unique_id in _payload_unique_ids(decoded):
            if attribute_class == AttributeClass.GENERIC:
                generic.append(unique_id)
            else:
                named.setdefault(attribute_class, unique_id)

        unique_ids: Dict[int, int] = {}
        for attribute_class, attribute_id in self._named.items():
            if attribute_class not in named:
                raise CodecError(f"DracoPy payload has no {attribute_class.name} attribute")
            unique_ids[attribute_id] = named[attribute_class]

        requested = sorted(self._generic_ids.items(), key=lambda item: item[1])
        if len(generic) != len(requested):
            raise CodecError(
                f"DracoPy payload holds {len(generic)} generic attributes, expected {len(requested)}")
        for (attribute_id, _), unique_id in zip(requested, sorted(generic)):
            unique_ids[attribute_id] = unique_id
        return unique_ids

    def encode(self) -> EncodedMesh:
        if AttributeClass.POSITION not in self._named:
            raise CodecError("DracoPy requires a POSITION attribute")

        points = self._attributes[self._named[AttributeClass.POSITION]][1]
        try:
            data = DracoPy.encode(
                points,
                faces=self._faces,
                quantization_bits=self._bits.get(AttributeClass.POSITION, 0),
                compression_level=max(0, min(10, 10 - self._speed)),
                preserve_order=self._method == EncodingMethod.MESH_SEQUENTIAL_ENCODING,
                **self._encode_kwargs(),
            )
            decoded = DracoPy.decode(data)
        except Exception as e:
            raise CodecError(f"DracoPy encoding failed: {e}") from e

        return EncodedMesh(
            data=bytes(data),
            num_points=len(decoded.points),
            num_faces=len(getattr(decoded, "faces", [])),
            unique_ids=self._unique_ids(decoded),
        )


class DracoPyGeometry(DecodedGeometry):
    """Arrays returned by ``DracoPy.decode``, addressed by payload unique id."""

    def __init__(self, status: DecodeStatus, kind: GeometryKind, decoded=None):
        self.status = status
        self._values: Dict[int, np.ndarray] = {}
        self._faces = np.zeros((0, 3), dtype=np.uint32)
        self._attributes: List[DecodedAttribute] = []
        self.num_points = 0
        self.num_faces = 0
        if decoded is None:
            return

        self.num_points = len(np.asarray(decoded.points).reshape(-1, 3))
        named_values = {
            AttributeClass.POSITION: decoded.points,
            AttributeClass.NORMAL: getattr(decoded, "normals", None),
            AttributeClass.TEX_COORD: getattr(decoded, "tex_coord", None),
            AttributeClass.COLOR: getattr(decoded, "colors", None),
        }
        for attribute_class, unique_id in _payload_unique_ids(decoded):
            values = _entry_field(decoded.get_attribute_by_unique_id(unique_id), "data")
            if values is None:
                values = named_values.get(attribute_class)
            if values is None or np.size(values) == 0:
                continue
            values = _decoded_values(values, self.num_points)
            self._values[unique_id] = values
            self._attributes.append(DecodedAttribute(
                unique_id=unique_id,
                attribute_class=attribute_class,
                data_type=AttributeTypeUtils.for_dtype(values.dtype).data_type,
                num_components=values.shape[1],
            ))

        if kind == GeometryKind.TRIANGULAR_MESH:
            self._faces = np.asarray(decoded.faces).reshape(-1, 3)
            self.num_faces = len(self._faces)

    def faces(self) -> np.ndarray:
        return self._faces

    def attribute_id(self, attribute_class: AttributeClass) -> int:
        for attribute in self._attributes:
            if attribute.attribute_class == attribute_class:
                return attribute.unique_id
        return -1

    def attribute_by_unique_id(self, unique_id: int) -> Optional[DecodedAttribute]:
        for attribute in self._attributes:
            if attribute.unique_id == unique_id:
                return attribute
        return None

    def _attribute_values(self, attribute: DecodedAttribute) -> np.ndarray:
        return self._values[attribute.unique_id].reshape(-1)


class DracoPyDecoder(GeometryDecoder):

    def decode(self, payload: bytes, kind: GeometryKind) -> DracoPyGeometry:
        try:
            decoded = DracoPy.decode(bytes(payload))
        except Exception as e:
            return DracoPyGeometry(DecodeStatus(ok=False, error_msg=str(e)), kind)
        return DracoPyGeometry(DecodeStatus(ok=True), kind, decoded)


class DracoPyCodec(Codec):
    """
    Codec backed by the DracoPy bindings.

    Supports mesh encoding and decoding. ``create_animation_encoder`` raises
    CodecError because DracoPy has no keyframe animation support.
    """

    def create_mesh_encoder(self) -> DracoPyMeshEncoder:
        return DracoPyMeshEncoder()

    def create_decoder(self) -> DracoPyDecoder:
        return DracoPyDecoder()

    def create_animation_encoder(self) -> AnimationEncoder:
        raise CodecError("DracoPy does not provide a keyframe animation encoder")
