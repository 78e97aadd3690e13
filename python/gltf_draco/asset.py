"""
In-memory glTF 2.0 document model.

This module provides Pydantic models for the parts of a glTF asset that the
compression passes read or rewrite:

1. Buffer / BufferView / Accessor - the byte storage graph
2. Primitive / Mesh - geometry, including the KHR_draco_mesh_compression record
3. Animation / AnimationSampler - keyframe timelines
4. Asset - the root document with helpers to append and resolve elements

Every model keeps unknown glTF properties as extra fields, so materials, nodes,
scenes and other data pass through a load/save round trip unchanged.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .constants import GltfConstants
from .errors import StructuralError

# Top-level arrays that glTF forbids from being present but empty
_OPTIONAL_ARRAYS = (
    "buffers", "bufferViews", "accessors", "meshes", "animations",
    "skins", "images", "extensionsUsed", "extensionsRequired",
)


class GltfModel(BaseModel):
    """Base for glTF records: camelCase aliases, unknown keys preserved."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Buffer(GltfModel):
    """A byte store, either loaded from the asset or holding a compressed payload."""

    byte_length: int = Field(..., alias="byteLength", ge=0)
    uri: Optional[str] = None
    name: Optional[str] = None
    data: Optional[bytes] = Field(
        None, exclude=True, description="Resolved buffer bytes (never serialized)")


class BufferView(GltfModel):
    """A (buffer, byteOffset, byteLength) window."""

    buffer: int
    byte_offset: int = Field(0, alias="byteOffset", ge=0)
    byte_length: int = Field(..., alias="byteLength", ge=0)
    byte_stride: Optional[int] = Field(None, alias="byteStride")
    target: Optional[int] = None
    name: Optional[str] = None


class AccessorSparseIndices(GltfModel):
    buffer_view: int = Field(..., alias="bufferView")
    byte_offset: int = Field(0, alias="byteOffset")
    component_type: int = Field(..., alias="componentType")


class AccessorSparseValues(GltfModel):
    buffer_view: int = Field(..., alias="bufferView")
    byte_offset: int = Field(0, alias="byteOffset")


class AccessorSparse(GltfModel):
    count: int
    indices: AccessorSparseIndices
    values: AccessorSparseValues


class Accessor(GltfModel):
    """Typed view over buffer data.

    An accessor whose data lives in a compressed payload has no bufferView but
    still describes the logical data (componentType, count, type, min, max).
    """

    buffer_view: Optional[int] = Field(None, alias="bufferView")
    byte_offset: Optional[int] = Field(None, alias="byteOffset")
    component_type: int = Field(..., alias="componentType")
    normalized: Optional[bool] = None
    count: int = Field(..., ge=0)
    type: str
    max: Optional[List[float]] = None
    min: Optional[List[float]] = None
    sparse: Optional[AccessorSparse] = None
    name: Optional[str] = None

    @property
    def num_components(self) -> int:
        """Get the number of components per element."""
        try:
            return GltfConstants.TYPE_COMPONENT_COUNT[self.type]
        except KeyError:
            raise StructuralError(f"Unknown accessor type '{self.type}'") from None


class DracoMeshCompression(GltfModel):
    """KHR_draco_mesh_compression record attached to a primitive.

    ``attributes`` maps a glTF semantic to the attribute id local to the
    compressed payload; these ids are unrelated to accessor ids.
    """

    buffer_view: int = Field(..., alias="bufferView")
    attributes: Dict[str, int] = Field(default_factory=dict)


class PrimitiveExtensions(GltfModel):
    khr_draco_mesh_compression: Optional[DracoMeshCompression] = Field(
        None, alias=GltfConstants.KHR_DRACO_MESH_COMPRESSION)

    @property
    def is_empty(self) -> bool:
        """True when no extension (known or unknown) is left."""
        return self.khr_draco_mesh_compression is None and not self.model_extra


class Primitive(GltfModel):
    """One drawable geometry unit: indices, attributes and draw mode."""

    attributes: Dict[str, int] = Field(default_factory=dict)
    indices: Optional[int] = None
    mode: Optional[int] = None
    material: Optional[int] = None
    targets: Optional[List[Dict[str, int]]] = None
    extensions: Optional[PrimitiveExtensions] = None

    @property
    def draco_extension(self) -> Optional[DracoMeshCompression]:
        """Get the KHR_draco_mesh_compression record, if any."""
        if self.extensions is None:
            return None
        return self.extensions.khr_draco_mesh_compression

    def set_draco_extension(self, record: DracoMeshCompression) -> None:
        if self.extensions is None:
            self.extensions = PrimitiveExtensions()
        self.extensions.khr_draco_mesh_compression = record

    def remove_draco_extension(self) -> None:
        """Remove the record, dropping ``extensions`` if nothing else is in it."""
        if self.extensions is None:
            return
        self.extensions.khr_draco_mesh_compression = None
        if self.extensions.is_empty:
            self.extensions = None


class Mesh(GltfModel):
    primitives: List[Primitive] = Field(default_factory=list)
    weights: Optional[List[float]] = None
    name: Optional[str] = None


class AnimationSampler(GltfModel):
    # Optional so a missing field is reported by the animation pass
    input: Optional[int] = None
    output: Optional[int] = None
    interpolation: Optional[str] = None


class Animation(GltfModel):
    samplers: List[AnimationSampler] = Field(default_factory=list)
    channels: List[Dict[str, Any]] = Field(default_factory=list)
    name: Optional[str] = None


class Skin(GltfModel):
    inverse_bind_matrices: Optional[int] = Field(None, alias="inverseBindMatrices")
    joints: List[int] = Field(default_factory=list)


class Image(GltfModel):
    buffer_view: Optional[int] = Field(None, alias="bufferView")
    uri: Optional[str] = None
    mime_type: Optional[str] = Field(None, alias="mimeType")


class DracoAnimationCompression(GltfModel):
    """One compressed timeline: an input accessor and the outputs sharing it."""

    input: int
    outputs: List[int] = Field(default_factory=list)
    attributes_id: List[int] = Field(default_factory=list, alias="attributesId")
    buffer_view: Optional[int] = Field(None, alias="bufferView")


class AssetExtensions(GltfModel):
    draco_animation_compression: Optional[List[DracoAnimationCompression]] = Field(
        None, alias=GltfConstants.DRACO_ANIMATION_COMPRESSION)


class Asset(GltfModel):
    """
    Root glTF document.

    Passes mutate the asset in place. Element ids are positions in the
    ``buffers``, ``buffer_views`` and ``accessors`` lists.
    """

    asset: Dict[str, Any] = Field(default_factory=lambda: {"version": "2.0"})
    buffers: List[Buffer] = Field(default_factory=list)
    buffer_views: List[BufferView] = Field(default_factory=list, alias="bufferViews")
    accessors: List[Accessor] = Field(default_factory=list)
    meshes: List[Mesh] = Field(default_factory=list)
    animations: List[Animation] = Field(default_factory=list)
    skins: List[Skin] = Field(default_factory=list)
    images: List[Image] = Field(default_factory=list)
    extensions_used: List[str] = Field(default_factory=list, alias="extensionsUsed")
    extensions_required: List[str] = Field(default_factory=list, alias="extensionsRequired")
    extensions: Optional[AssetExtensions] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], buffers: Optional[List[bytes]] = None) -> "Asset":
        """
        Build an asset from glTF JSON.

        Args:
            data: Parsed glTF JSON
            buffers: Optional resolved bytes for each entry of ``buffers``

        Returns:
            Asset with buffer data attached
        """
        asset = cls.model_validate(data)
        if buffers is not None:
            for buffer, payload in zip(asset.buffers, buffers):
                buffer.data = payload
        return asset

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to glTF JSON (buffer bytes are not included)."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        for key in _OPTIONAL_ARRAYS:
            if key in data and not data[key]:
                del data[key]
        if "extensions" in data and not data["extensions"]:
            del data["extensions"]
        return data

    # ============================================================
    # Lookups
    # ============================================================

    def get_accessor(self, accessor_id: Optional[int]) -> Accessor:
        if accessor_id is None or not 0 <= accessor_id < len(self.accessors):
            raise StructuralError(f"Accessor {accessor_id} does not exist")
        return self.accessors[accessor_id]

    def get_buffer_view(self, buffer_view_id: Optional[int]) -> BufferView:
        if buffer_view_id is None or not 0 <= buffer_view_id < len(self.buffer_views):
            raise StructuralError(f"BufferView {buffer_view_id} does not exist")
        return self.buffer_views[buffer_view_id]

    def buffer_view_data(self, buffer_view_id: int) -> bytes:
        """
        Resolve a bufferView to the bytes of its window.

        Raises:
            StructuralError: If the view, its buffer or the buffer data is missing,
                or the window runs past the end of the buffer
        """
        view = self.get_buffer_view(buffer_view_id)
        if not 0 <= view.buffer < len(self.buffers):
            raise StructuralError(
                f"BufferView {buffer_view_id} references missing buffer {view.buffer}")
        buffer = self.buffers[view.buffer]
        if buffer.data is None:
            raise StructuralError(f"Buffer {view.buffer} has no data loaded")
        end = view.byte_offset + view.byte_length
        if end > len(buffer.data):
            raise StructuralError(
                f"BufferView {buffer_view_id} ends at byte {end}, "
                f"past the {len(buffer.data)} bytes of buffer {view.buffer}")
        return bytes(buffer.data[view.byte_offset:end])

    def iter_primitives(self) -> Iterator[Tuple[int, int, Primitive]]:
        """Yield (mesh_index, primitive_index, primitive), meshes then primitives in order."""
        for mesh_index, mesh in enumerate(self.meshes):
            for primitive_index, primitive in enumerate(mesh.primitives):
                yield mesh_index, primitive_index, primitive

    @property
    def draco_animation_records(self) -> List[DracoAnimationCompression]:
        if self.extensions is None or self.extensions.draco_animation_compression is None:
            return []
        return self.extensions.draco_animation_compression

    # ============================================================
    # Mutation helpers
    # ============================================================

    def add_buffer(self, data: bytes) -> int:
        """Append a buffer holding ``data`` and return its id."""
        self.buffers.append(Buffer(byte_length=len(data), data=bytes(data)))
        return len(self.buffers) - 1

    def add_buffer_view(
        self,
        buffer: int,
        byte_length: int,
        byte_offset: int = 0,
        target: Optional[int] = None,
    ) -> int:
        """Append a bufferView and return its id."""
        self.buffer_views.append(BufferView(
            buffer=buffer,
            byte_offset=byte_offset,
            byte_length=byte_length,
            target=target,
        ))
        return len(self.buffer_views) - 1

    def add_accessor(self, accessor: Accessor) -> int:
        """Append an accessor and return its id."""
        self.accessors.append(accessor)
        return len(self.accessors) - 1

    def add_extension_used(self, name: str) -> None:
        if name not in self.extensions_used:
            self.extensions_used.append(name)

    def add_extension_required(self, name: str) -> None:
        """Declare an extension required (and therefore also used)."""
        self.add_extension_used(name)
        if name not in self.extensions_required:
            self.extensions_required.append(name)

    def remove_extension(self, name: str) -> None:
        """Drop an extension from both the used and required lists."""
        self.extensions_used = [e for e in self.extensions_used if e != name]
        self.extensions_required = [e for e in self.extensions_required if e != name]

    def add_draco_animation_record(self, record: DracoAnimationCompression) -> None:
        if self.extensions is None:
            self.extensions = AssetExtensions()
        if self.extensions.draco_animation_compression is None:
            self.extensions.draco_animation_compression = []
        self.extensions.draco_animation_compression.append(record)
