"""
Draco compression passes for glTF 2.0 assets.

This package rewrites glTF assets held in memory, including:

1. Asset models for the buffers, accessors, meshes and animations of a glTF document
2. DracoMeshCompressor to store triangle primitives as KHR_draco_mesh_compression payloads
3. DracoMeshDecompressor to restore such payloads to plain accessors
4. DracoAnimationCompressor to store sampler data as Draco_animation_compression payloads
5. A codec interface, with a DracoPy implementation in ``gltf_draco.dracopy_codec``
6. GltfIO for reading and writing .gltf and .glb files
"""

from .animation import DracoAnimationCompressor
from .asset import (
    Accessor,
    Animation,
    AnimationSampler,
    Asset,
    Buffer,
    BufferView,
    DracoAnimationCompression,
    DracoMeshCompression,
    Mesh,
    Primitive,
)
from .attribute_types import AttributeType, AttributeTypeUtils, ComponentType
from .codec import (
    AnimationEncoder,
    AttributeClass,
    Codec,
    DecodedGeometry,
    EncodedMesh,
    GeometryDecoder,
    GeometryKind,
    MeshEncoder,
)
from .compress import DracoMeshCompressor
from .constants import GlbConstants, GltfConstants
from .decompress import DracoMeshDecompressor
from .errors import (
    AssetFormatError,
    CodecError,
    ConsistencyError,
    DracoPipelineError,
    StructuralError,
    UnsupportedAttributeTypeError,
)
from .fingerprint import PrimitiveCache, PrimitiveFingerprint
from .io import GltfIO
from .logging_config import setup_logging
from .options import DracoAnimationOptions, DracoOptions
from .quantization import QuantizationPlan, QuantizationUtils
from .rewriter import AssetGraphRewriter
from .utils import AccessorUtils, ChecksumUtils, DebugExportUtils

__all__ = [
    # Passes
    "DracoMeshCompressor",
    "DracoMeshDecompressor",
    "DracoAnimationCompressor",

    # Asset model
    "Accessor",
    "Animation",
    "AnimationSampler",
    "Asset",
    "Buffer",
    "BufferView",
    "DracoAnimationCompression",
    "DracoMeshCompression",
    "Mesh",
    "Primitive",

    # Codec interface
    "AnimationEncoder",
    "AttributeClass",
    "Codec",
    "DecodedGeometry",
    "EncodedMesh",
    "GeometryDecoder",
    "GeometryKind",
    "MeshEncoder",

    # Configuration
    "DracoOptions",
    "DracoAnimationOptions",

    # Errors
    "AssetFormatError",
    "CodecError",
    "ConsistencyError",
    "DracoPipelineError",
    "StructuralError",
    "UnsupportedAttributeTypeError",

    # Building blocks
    "AssetGraphRewriter",
    "AttributeType",
    "AttributeTypeUtils",
    "ComponentType",
    "PrimitiveCache",
    "PrimitiveFingerprint",
    "QuantizationPlan",
    "QuantizationUtils",

    # Utilities
    "AccessorUtils",
    "ChecksumUtils",
    "DebugExportUtils",
    "GlbConstants",
    "GltfConstants",
    "GltfIO",
    "setup_logging",
]
