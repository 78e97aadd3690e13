"""
Mesh decompression pass.

Decodes every KHR_draco_mesh_compression payload back into plain accessor
data and removes the extension once no primitive uses it.
"""

import logging
from typing import Dict, Optional

import numpy as np

from .asset import Asset, Primitive
from .attribute_types import AttributeTypeUtils
from .codec import AttributeClass, Codec, GeometryKind
from .constants import GltfConstants
from .errors import CodecError, StructuralError
from .fingerprint import PrimitiveCache, PrimitiveFingerprint
from .rewriter import AssetGraphRewriter

logger = logging.getLogger(__name__)


class DracoMeshDecompressor:
    """Restores Draco compressed primitives to uncompressed accessors."""

    def __init__(self, codec: Codec):
        self.codec = codec

    def decompress(self, asset: Asset) -> Asset:
        """
        Decompress every primitive carrying the extension, in place.

        Args:
            asset: Asset to rewrite

        Returns:
            The same asset

        Raises:
            CodecError: If a payload fails to decode or has no POSITION attribute
            StructuralError: If the extension record does not match the primitive
            UnsupportedAttributeTypeError: If the codec reports an unknown data type
        """
        rewriter = AssetGraphRewriter(asset)
        cache: PrimitiveCache[Primitive] = PrimitiveCache()
        decompressed = 0

        for mesh_index, primitive_index, primitive in asset.iter_primitives():
            record = primitive.draco_extension
            if record is None:
                continue
            label = f"mesh:{mesh_index} primitive:{primitive_index}"

            fingerprint = PrimitiveFingerprint.compute_compressed(primitive)
            cached = cache.get(fingerprint)
            if cached is not None:
                # Accessors are shared and already hold the decoded data
                logger.info(f"{label}: reusing decoded geometry")
                primitive.indices = cached.indices
                primitive.remove_draco_extension()
                decompressed += 1
                continue

            self._decompress_primitive(asset, rewriter, primitive, label)
            cache.put(fingerprint, primitive)
            decompressed += 1

        if decompressed:
            still_compressed = any(
                p.draco_extension is not None for _, _, p in asset.iter_primitives())
            if not still_compressed:
                asset.remove_extension(GltfConstants.KHR_DRACO_MESH_COMPRESSION)
            rewriter.prune_unused()
        logger.info(f"Decompressed {decompressed} primitives ({cache.hits} shared)")
        return asset

    def _decompress_primitive(self, asset: Asset, rewriter: AssetGraphRewriter,
                              primitive: Primitive, label: str) -> None:
        record = primitive.draco_extension
        payload = asset.buffer_view_data(record.buffer_view)

        with self.codec.create_decoder() as decoder:
            kind = decoder.geometry_kind(payload)
            if kind == GeometryKind.INVALID:
                raise CodecError(f"{label}: bufferView {record.buffer_view} is not a Draco payload")
            logger.debug(f"{label}: decoding {kind.name.lower()} ({len(payload)} bytes)")

            with decoder.decode(payload, kind) as geometry:
                if not geometry.status.ok:
                    raise CodecError(f"{label}: decoding failed: {geometry.status.error_msg}")
                if geometry.attribute_id(AttributeClass.POSITION) == -1:
                    raise CodecError(f"{label}: no position attribute found")

                indices: Optional[np.ndarray] = None
                if kind == GeometryKind.TRIANGULAR_MESH:
                    if primitive.indices is None:
                        raise StructuralError(f"{label}: compressed mesh has no indices accessor")
                    index_accessor = asset.get_accessor(primitive.indices)
                    dtype = AttributeTypeUtils.dtype_for_component_type(index_accessor.component_type)
                    if geometry.num_points - 1 > np.iinfo(dtype).max:
                        raise StructuralError(
                            f"{label}: {geometry.num_points} decoded points do not fit "
                            f"{np.dtype(dtype).name} indices")
                    indices = np.asarray(geometry.faces()).reshape(-1).astype(dtype)

                attributes: Dict[str, np.ndarray] = {}
                for semantic, unique_id in record.attributes.items():
                    if semantic not in primitive.attributes:
                        raise StructuralError(
                            f"{label}: compressed attribute {semantic} has no accessor")
                    attribute = geometry.attribute_by_unique_id(unique_id)
                    if attribute is None:
                        raise CodecError(f"{label}: payload has no attribute with id {unique_id}")
                    attributes[semantic] = AttributeTypeUtils.get_attribute(geometry, attribute)
                num_points = geometry.num_points

        logger.info(f"{label}: {num_points} points, "
                    f"{0 if indices is None else len(indices) // 3} faces")
        rewriter.attach_decompressed(primitive, indices, attributes, num_points)
