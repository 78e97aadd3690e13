"""Pytest configuration and shared fixtures for gltf_draco tests."""

import io
import json
from typing import Dict, List, Optional

import numpy as np
import pytest

from gltf_draco.asset import Accessor, Asset, Buffer, BufferView, Mesh, Primitive
from gltf_draco.attribute_types import AttributeTypeUtils
from gltf_draco.codec import (
    AnimationEncoder,
    AttributeClass,
    Codec,
    DecodedAttribute,
    DecodedGeometry,
    DecodeStatus,
    EncodedMesh,
    EncodingMethod,
    GeometryDecoder,
    MeshEncoder,
)

FAKE_MESH_HEADER = b"DRACO\x02\x02\x01\x00"
FAKE_POINT_CLOUD_HEADER = b"DRACO\x02\x02\x00\x00"


def _pack(arrays: Dict[str, np.ndarray], meta: dict) -> bytes:
    stream = io.BytesIO()
    np.savez(stream, meta=np.array(json.dumps(meta)), **arrays)
    return stream.getvalue()


def _unpack(payload: bytes):
    with np.load(io.BytesIO(payload)) as archive:
        arrays = {name: archive[name] for name in archive.files}
    return arrays, json.loads(str(arrays.pop("meta")))


def quantize(values: np.ndarray, bits: int, origin: np.ndarray, range_: float) -> np.ndarray:
    """Snap values to a grid of 2**bits - 1 steps over [origin, origin + range]."""
    if range_ <= 0:
        return values
    step = range_ / ((1 << bits) - 1)
    return (origin + np.round((values - origin) / step) * step).astype(values.dtype)


class FakeMeshEncoder(MeshEncoder):
    """Stores the mesh in an npz archive behind a Draco-like header."""

    def __init__(self, codec: "FakeCodec"):
        self.codec = codec
        self.faces = np.zeros((0, 3), dtype=np.uint32)
        self.attributes: List[tuple] = []
        self.bits: Dict[AttributeClass, int] = {}
        self.explicit: Dict[AttributeClass, tuple] = {}
        self.speed: Optional[int] = None
        self.method = EncodingMethod.MESH_EDGEBREAKER_ENCODING

    def _destroy(self):
        self.codec.released += 1

    def add_faces(self, faces):
        self.faces = np.asarray(faces, dtype=np.uint32).reshape(-1, 3)

    def _add_attribute(self, attribute_class, num_points, num_components, data):
        if attribute_class in self.codec.refuse:
            return -1
        self.attributes.append((attribute_class, data.reshape(num_points, num_components)))
        return len(self.attributes) - 1

    def set_speed_options(self, encoding_speed, decoding_speed):
        self.speed = encoding_speed

    def set_attribute_quantization(self, attribute_class, bits):
        self.bits[attribute_class] = bits

    def set_attribute_explicit_quantization(self, attribute_class, bits, num_components, origin, range_):
        self.bits[attribute_class] = bits
        self.explicit[attribute_class] = (np.asarray(origin, dtype=np.float64), float(range_))

    def set_encoding_method(self, method):
        self.method = method

    def encode(self):
        self.codec.encoders.append(self)
        if self.codec.fail_encode:
            return EncodedMesh(data=b"", num_points=0, num_faces=0)

        arrays = {}
        meta = {"classes": []}
        for index, (attribute_class, values) in enumerate(self.attributes):
            bits = self.bits.get(attribute_class, 0)
            if bits > 0 and values.dtype.kind == "f" and len(values):
                if attribute_class in self.explicit:
                    origin, range_ = self.explicit[attribute_class]
                else:
                    origin = values.min(axis=0).astype(np.float64)
                    range_ = float((values.max(axis=0) - origin).max())
                values = quantize(values, bits, origin, range_)
            arrays[f"a{index}"] = values
            meta["classes"].append(int(attribute_class))

        point_cloud = self.codec.point_cloud
        if not point_cloud:
            arrays["faces"] = self.faces
        header = FAKE_POINT_CLOUD_HEADER if point_cloud else FAKE_MESH_HEADER
        num_points = len(self.attributes[0][1]) if self.attributes else 0
        return EncodedMesh(
            data=header + _pack(arrays, meta),
            num_points=num_points,
            num_faces=0 if point_cloud else len(self.faces),
            unique_ids={i: i + self.codec.unique_id_offset for i in range(len(self.attributes))},
        )


class FakeGeometry(DecodedGeometry):
    def __init__(self, codec: "FakeCodec", status: DecodeStatus, arrays=None, meta=None):
        self.codec = codec
        self.status = status
        self.arrays = arrays or {}
        self.attributes: List[DecodedAttribute] = []
        for index, attribute_class in enumerate((meta or {}).get("classes", [])):
            values = self.arrays[f"a{index}"]
            self.attributes.append(DecodedAttribute(
                unique_id=index + codec.unique_id_offset,
                attribute_class=AttributeClass(attribute_class),
                data_type=AttributeTypeUtils.for_dtype(values.dtype).data_type,
                num_components=values.shape[1],
            ))
        self.num_points = len(self.arrays["a0"]) if "a0" in self.arrays else 0
        self.num_points += codec.extra_points
        self.num_faces = len(self.arrays["faces"]) if "faces" in self.arrays else 0

    def _destroy(self):
        self.codec.released += 1

    def faces(self):
        return self.arrays.get("faces", np.zeros((0, 3), dtype=np.uint32))

    def attribute_id(self, attribute_class):
        for attribute in self.attributes:
            if attribute.attribute_class == attribute_class:
                return attribute.unique_id
        return -1

    def attribute_by_unique_id(self, unique_id):
        for attribute in self.attributes:
            if attribute.unique_id == unique_id:
                return attribute
        return None

    def _attribute_values(self, attribute):
        return self.arrays[f"a{attribute.unique_id - self.codec.unique_id_offset}"]


class FakeDecoder(GeometryDecoder):
    def __init__(self, codec: "FakeCodec"):
        self.codec = codec

    def _destroy(self):
        self.codec.released += 1

    def decode(self, payload, kind):
        self.codec.decode_calls += 1
        self.codec.created += 1
        if self.codec.fail_decode:
            return FakeGeometry(self.codec, DecodeStatus(ok=False, error_msg="corrupt payload"))
        arrays, meta = _unpack(payload[len(FAKE_MESH_HEADER):])
        return FakeGeometry(self.codec, DecodeStatus(ok=True), arrays, meta)


class FakeAnimationEncoder(AnimationEncoder):
    def __init__(self, codec: "FakeCodec"):
        self.codec = codec
        self.timestamps = None
        self.keyframes: List[np.ndarray] = []
        self.timestamp_bits = None
        self.keyframe_bits = None

    def _destroy(self):
        self.codec.released += 1

    def set_timestamps(self, timestamps):
        self.timestamps = np.asarray(timestamps, dtype=np.float32)

    def add_keyframes(self, num_components, data):
        self.keyframes.append(np.asarray(data, dtype=np.float32).reshape(-1, num_components))
        return len(self.keyframes)

    def set_timestamps_quantization(self, bits):
        self.timestamp_bits = bits

    def set_keyframes_quantization(self, bits):
        self.keyframe_bits = bits

    def encode(self):
        self.codec.animation_encoders.append(self)
        if self.codec.fail_encode:
            return b""
        arrays = {f"k{i}": k for i, k in enumerate(self.keyframes)}
        arrays["timestamps"] = self.timestamps
        return b"DRACO_ANIM" + _pack(arrays, {"outputs": len(self.keyframes)})


class FakeCodec(Codec):
    """
    In-memory codec double.

    Counts encodes, decodes and released handles, can be told to refuse
    attribute classes or to fail, can report extra decoded points, and
    quantizes float attributes onto a regular grid so precision loss is
    predictable.
    """

    def __init__(self):
        self.refuse = set()
        self.fail_encode = False
        self.fail_decode = False
        self.point_cloud = False
        self.unique_id_offset = 0
        self.extra_points = 0
        self.encoders: List[FakeMeshEncoder] = []
        self.animation_encoders: List[FakeAnimationEncoder] = []
        self.decode_calls = 0
        self.created = 0
        self.released = 0

    @property
    def encode_calls(self) -> int:
        return len(self.encoders)

    def create_mesh_encoder(self):
        self.created += 1
        return FakeMeshEncoder(self)

    def create_decoder(self):
        self.created += 1
        return FakeDecoder(self)

    def create_animation_encoder(self):
        self.created += 1
        return FakeAnimationEncoder(self)


class AssetBuilder:
    """Builds small assets whose accessors live in a single buffer."""

    def __init__(self):
        self.data = bytearray()
        self.asset = Asset()

    def add_accessor(self, values: np.ndarray, accessor_type: str, min_max: bool = True,
                     target: Optional[int] = None) -> int:
        values = np.ascontiguousarray(values)
        component_type = AttributeTypeUtils.for_dtype(values.dtype).component_type
        self.data += b"\x00" * (-len(self.data) % 4)
        offset = len(self.data)
        self.data += values.tobytes()
        self.asset.buffer_views.append(BufferView(
            buffer=0, byte_offset=offset, byte_length=values.nbytes, target=target))
        components = values.reshape(len(values), -1)
        accessor = Accessor(
            buffer_view=len(self.asset.buffer_views) - 1,
            component_type=int(component_type),
            count=len(values),
            type=accessor_type,
        )
        if min_max and len(values):
            accessor.min = components.min(axis=0).tolist()
            accessor.max = components.max(axis=0).tolist()
        return self.asset.add_accessor(accessor)

    def add_primitive(self, attributes: Dict[str, int], indices: Optional[int] = None,
                      mode: Optional[int] = None, targets=None, mesh: Optional[int] = None) -> Primitive:
        primitive = Primitive(attributes=attributes, indices=indices, mode=mode, targets=targets)
        if mesh is None or mesh >= len(self.asset.meshes):
            self.asset.meshes.append(Mesh())
            mesh = len(self.asset.meshes) - 1
        self.asset.meshes[mesh].primitives.append(primitive)
        return primitive

    def add_triangle_mesh(self, positions: np.ndarray, indices: np.ndarray, **extra) -> Primitive:
        attributes = {"POSITION": self.add_accessor(positions, "VEC3")}
        for semantic, (values, accessor_type) in extra.items():
            attributes[semantic] = self.add_accessor(values, accessor_type)
        index_id = self.add_accessor(indices, "SCALAR", min_max=False)
        return self.add_primitive(attributes, index_id)

    def build(self) -> Asset:
        self.asset.buffers = [Buffer(byte_length=len(self.data), data=bytes(self.data))]
        return self.asset


@pytest.fixture
def codec():
    """In-memory codec double."""
    return FakeCodec()


@pytest.fixture
def builder():
    """Fresh asset builder."""
    return AssetBuilder()


@pytest.fixture
def cube_vertices():
    """Vertices for a unit cube mesh."""
    return np.array([
        [-0.5, -0.5, -0.5],
        [0.5, -0.5, -0.5],
        [0.5, 0.5, -0.5],
        [-0.5, 0.5, -0.5],
        [-0.5, -0.5, 0.5],
        [0.5, -0.5, 0.5],
        [0.5, 0.5, 0.5],
        [-0.5, 0.5, 0.5]
    ], dtype=np.float32)


@pytest.fixture
def cube_indices():
    """Triangle indices for a cube mesh."""
    return np.array([
        0, 1, 2, 2, 3, 0,  # front
        1, 5, 6, 6, 2, 1,  # right
        5, 4, 7, 7, 6, 5,  # back
        4, 0, 3, 3, 7, 4,  # left
        3, 2, 6, 6, 7, 3,  # top
        4, 5, 1, 1, 0, 4   # bottom
    ], dtype=np.uint16)


@pytest.fixture
def cube_normals(cube_vertices):
    """Per-vertex normals pointing away from the cube center."""
    normals = cube_vertices / np.linalg.norm(cube_vertices, axis=1, keepdims=True)
    return normals.astype(np.float32)


@pytest.fixture
def cube_uvs(cube_vertices):
    """Texture coordinates from the x/y position."""
    return (cube_vertices[:, :2] + 0.5).astype(np.float32)


@pytest.fixture
def cube_asset(builder, cube_vertices, cube_indices, cube_normals, cube_uvs):
    """Asset with one cube primitive (POSITION, NORMAL, TEXCOORD_0, uint16 indices)."""
    builder.add_triangle_mesh(
        cube_vertices, cube_indices,
        NORMAL=(cube_normals, "VEC3"),
        TEXCOORD_0=(cube_uvs, "VEC2"),
    )
    return builder.build()
