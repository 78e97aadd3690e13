"""
Mesh compression pass.

Replaces the index and vertex data of every indexed triangle primitive with a
KHR_draco_mesh_compression payload. Primitives that share the same accessors
are encoded once and share the payload.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np

from .asset import Asset, Primitive
from .attribute_types import AttributeTypeUtils
from .codec import AttributeClass, Codec, EncodedMesh, EncodingMethod
from .constants import GltfConstants
from .errors import CodecError, StructuralError
from .fingerprint import PrimitiveCache, PrimitiveFingerprint
from .options import DracoOptions
from .quantization import QuantizationPlan, QuantizationUtils
from .rewriter import AssetGraphRewriter
from .utils.accessor_utils import AccessorUtils
from .utils.debug_export import DebugExportUtils

logger = logging.getLogger(__name__)

# Attribute classes written to the OBJ debug dump
_DEBUG_CLASSES = (AttributeClass.POSITION, AttributeClass.TEX_COORD, AttributeClass.NORMAL)


class DracoMeshCompressor:
    """
    Compresses the meshes of an asset with a codec.

    Example:
        with DracoPyCodec() as codec:
            DracoMeshCompressor(codec, DracoOptions(compression_level=10)).compress(asset)
    """

    def __init__(self, codec: Codec, options: Optional[DracoOptions] = None):
        self.codec = codec
        self.options = options if options is not None else DracoOptions()

    def compress(self, asset: Asset) -> Asset:
        """
        Compress every eligible primitive in place.

        Primitives with a mode other than TRIANGLES, without indices, or already
        carrying the extension are left untouched.

        Args:
            asset: Asset to rewrite

        Returns:
            The same asset

        Raises:
            StructuralError: If referenced data is missing or malformed
            UnsupportedAttributeTypeError: If an accessor has an unknown componentType
            CodecError: If the codec refuses an attribute or the encode fails
        """
        plan = QuantizationUtils.plan(asset, self.options)
        rewriter = AssetGraphRewriter(asset)
        cache: PrimitiveCache[Primitive] = PrimitiveCache()
        compressed = 0

        for mesh_index, primitive_index, primitive in asset.iter_primitives():
            label = f"mesh:{mesh_index} primitive:{primitive_index}"
            if primitive.mode is not None and primitive.mode != GltfConstants.MODE_TRIANGLES:
                logger.debug(f"{label}: skipping mode {primitive.mode}")
                continue
            if primitive.indices is None:
                logger.debug(f"{label}: skipping non-indexed primitive")
                continue
            if primitive.draco_extension is not None:
                logger.debug(f"{label}: already compressed")
                continue

            fingerprint = PrimitiveFingerprint.compute(primitive)
            cached = cache.get(fingerprint)
            if cached is not None:
                logger.info(f"{label}: reusing compressed geometry")
                rewriter.dedupe(primitive, cached)
                compressed += 1
                continue

            encoded, attribute_ids = self._encode_primitive(
                asset, primitive, plan, mesh_index, primitive_index)
            logger.info(
                f"{label}: {encoded.num_points} points, {encoded.num_faces} faces "
                f"-> {len(encoded.data)} bytes")
            rewriter.attach_compressed(primitive, attribute_ids, encoded)
            cache.put(fingerprint, primitive)
            compressed += 1

        if compressed:
            asset.add_extension_required(GltfConstants.KHR_DRACO_MESH_COMPRESSION)
            rewriter.prune_unused()
        logger.info(f"Compressed {compressed} primitives ({cache.hits} deduplicated)")
        return asset

    def _encode_primitive(
        self,
        asset: Asset,
        primitive: Primitive,
        plan: QuantizationPlan,
        mesh_index: int,
        primitive_index: int,
    ) -> Tuple[EncodedMesh, Dict[str, int]]:
        indices = AccessorUtils.read_packed(asset, asset.get_accessor(primitive.indices))
        if len(indices) % 3 != 0:
            raise StructuralError(
                f"Index accessor {primitive.indices} has {len(indices)} indices, "
                "not a multiple of 3")
        faces = indices.astype(np.uint32).reshape(-1, 3)

        attribute_ids: Dict[str, int] = {}
        debug_arrays: Dict[AttributeClass, np.ndarray] = {}
        with self.codec.create_mesh_encoder() as encoder:
            encoder.add_faces(faces)

            for semantic, accessor_id in primitive.attributes.items():
                accessor = asset.get_accessor(accessor_id)
                components = AccessorUtils.components_for_type(accessor.type)
                data = AccessorUtils.read_packed(asset, accessor)
                attribute_class = QuantizationUtils.attribute_class_for_semantic(semantic)
                attribute_id = AttributeTypeUtils.add_attribute(
                    encoder, accessor.component_type, attribute_class,
                    accessor.count, components, data)
                if attribute_id < 0:
                    raise CodecError(f"Failed adding attribute {semantic}")
                attribute_ids[semantic] = attribute_id
                if attribute_class in _DEBUG_CLASSES and attribute_class not in debug_arrays:
                    debug_arrays[attribute_class] = data.reshape(accessor.count, components)

            speed = self.options.encoding_speed
            encoder.set_speed_options(speed, speed)
            QuantizationUtils.apply(encoder, plan)
            if primitive.targets:
                # Morph targets index vertices by position, so the order must survive
                encoder.set_encoding_method(EncodingMethod.MESH_SEQUENTIAL_ENCODING)

            encoded = encoder.encode()

        if not encoded.data:
            raise CodecError(f"Draco encoding failed for mesh {mesh_index} primitive {primitive_index}")

        if self.options.debug_directory is not None and AttributeClass.POSITION in debug_arrays:
            DebugExportUtils.write_obj(
                Path(self.options.debug_directory)
                / DebugExportUtils.primitive_obj_name(mesh_index, primitive_index),
                debug_arrays[AttributeClass.POSITION],
                faces,
                texcoords=debug_arrays.get(AttributeClass.TEX_COORD),
                normals=debug_arrays.get(AttributeClass.NORMAL),
            )
        return encoded, attribute_ids
