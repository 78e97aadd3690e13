"""
Graph edits shared by the compression passes.

The rewriter appends buffers for new payloads, swaps accessors for data-less
clones, writes and removes extension records, and finally prunes everything
that is no longer reachable so that no orphaned element survives a pass.
"""

import logging
from typing import Dict, List, Optional, Set

import numpy as np

from .asset import Accessor, Asset, DracoAnimationCompression, DracoMeshCompression, Primitive
from .attribute_types import AttributeTypeUtils
from .codec import EncodedMesh
from .constants import GltfConstants
from .errors import StructuralError

logger = logging.getLogger(__name__)


class AssetGraphRewriter:
    """Mutates one asset in place."""

    def __init__(self, asset: Asset):
        self.asset = asset

    # ============================================================
    # Payloads
    # ============================================================

    def add_payload(self, data: bytes, target: Optional[int] = None) -> int:
        """
        Store bytes in a new buffer covered by one bufferView.

        Args:
            data: Payload bytes
            target: Optional bufferView target

        Returns:
            Id of the new bufferView (byteOffset 0, byteLength == len(data))
        """
        buffer_id = self.asset.add_buffer(data)
        return self.asset.add_buffer_view(buffer_id, len(data), byte_offset=0, target=target)

    def clone_without_data(self, accessor_id: int) -> int:
        """Append a copy of an accessor that has no bufferView, byteOffset or sparse data."""
        source = self.asset.get_accessor(accessor_id)
        clone = source.model_copy(deep=True, update={
            "buffer_view": None,
            "byte_offset": None,
            "sparse": None,
        })
        return self.asset.add_accessor(clone)

    # ============================================================
    # Mesh compression
    # ============================================================

    def attach_compressed(self, primitive: Primitive, attribute_ids: Dict[str, int],
                          encoded: EncodedMesh) -> None:
        """
        Point a primitive at a freshly encoded payload.

        Index and attribute accessors are replaced by data-less clones whose
        counts follow the encoded geometry.

        Args:
            primitive: Primitive that was encoded
            attribute_ids: Semantic -> id returned when the attribute was added
            encoded: Encoder result
        """
        indices_id = self.clone_without_data(primitive.indices)
        self.asset.accessors[indices_id].count = encoded.num_faces * 3
        primitive.indices = indices_id

        for semantic, accessor_id in list(primitive.attributes.items()):
            clone_id = self.clone_without_data(accessor_id)
            self.asset.accessors[clone_id].count = encoded.num_points
            primitive.attributes[semantic] = clone_id

        buffer_view_id = self.add_payload(encoded.data)
        primitive.set_draco_extension(DracoMeshCompression(
            buffer_view=buffer_view_id,
            attributes={semantic: encoded.unique_id(attribute_id)
                        for semantic, attribute_id in attribute_ids.items()},
        ))

    def dedupe(self, primitive: Primitive, cached: Primitive) -> None:
        """Reuse the accessors and payload of an already compressed primitive."""
        record = cached.draco_extension
        primitive.attributes = dict(cached.attributes)
        primitive.indices = cached.indices
        primitive.set_draco_extension(DracoMeshCompression(
            buffer_view=record.buffer_view,
            attributes=dict(record.attributes),
        ))

    # ============================================================
    # Mesh decompression
    # ============================================================

    def attach_decompressed(
        self,
        primitive: Primitive,
        indices: Optional[np.ndarray],
        attributes: Dict[str, np.ndarray],
        num_points: int,
    ) -> None:
        """
        Give a primitive's accessors the decoded data and drop its extension record.

        Args:
            primitive: Primitive carrying KHR_draco_mesh_compression
            indices: Decoded indices typed like the index accessor, or None for
                a point cloud (the primitive loses its indices)
            attributes: Semantic -> flat decoded values
            num_points: Decoded point count
        """
        if indices is None:
            primitive.indices = None
        else:
            accessor = self.asset.get_accessor(primitive.indices)
            accessor.buffer_view = self.add_payload(
                indices.tobytes(), target=GltfConstants.ELEMENT_ARRAY_BUFFER)
            accessor.byte_offset = 0
            accessor.count = len(indices)

        for semantic, values in attributes.items():
            accessor = self.asset.get_accessor(primitive.attributes[semantic])
            component_type = AttributeTypeUtils.for_dtype(values.dtype).component_type
            if accessor.component_type != component_type:
                logger.debug(
                    f"{semantic}: componentType {accessor.component_type} -> {int(component_type)}")
                accessor.component_type = int(component_type)
            accessor.buffer_view = self.add_payload(
                values.tobytes(), target=GltfConstants.ARRAY_BUFFER)
            accessor.byte_offset = 0
            accessor.count = num_points

        primitive.remove_draco_extension()

    # ============================================================
    # Animation compression
    # ============================================================

    def attach_compressed_animation(self, record: DracoAnimationCompression, payload: bytes) -> None:
        record.buffer_view = self.add_payload(payload)

    def strip_animation_accessor(self, accessor_id: int) -> int:
        """
        Replace an accessor used by animation samplers with a data-less copy.

        The copy keeps componentType, count, type, min and max.

        Returns:
            Id of the new accessor
        """
        source = self.asset.get_accessor(accessor_id)
        new_id = self.asset.add_accessor(Accessor(
            component_type=source.component_type,
            count=source.count,
            type=source.type,
            max=source.max,
            min=source.min,
        ))
        for animation in self.asset.animations:
            for sampler in animation.samplers:
                if sampler.input == accessor_id:
                    sampler.input = new_id
                if sampler.output == accessor_id:
                    sampler.output = new_id
        return new_id

    # ============================================================
    # Pruning
    # ============================================================

    def prune_unused(self) -> None:
        """
        Remove unreachable accessors, bufferViews and buffers and renumber references.

        Roots are primitives (indices, attributes, morph targets, extension
        bufferView), animation samplers, Draco animation records, skins, images
        and the instancing attributes of nodes. Accessors referenced only from
        other extensions are not seen and get pruned.
        """
        asset = self.asset
        used_accessors = self._reachable_accessors()
        accessor_map = self._index_map(len(asset.accessors), used_accessors)

        used_views: Set[int] = set()
        for accessor_id in used_accessors:
            accessor = asset.accessors[accessor_id]
            if accessor.buffer_view is not None:
                used_views.add(accessor.buffer_view)
            if accessor.sparse is not None:
                used_views.add(accessor.sparse.indices.buffer_view)
                used_views.add(accessor.sparse.values.buffer_view)
        for _, _, primitive in asset.iter_primitives():
            if primitive.draco_extension is not None:
                used_views.add(primitive.draco_extension.buffer_view)
        for record in asset.draco_animation_records:
            if record.buffer_view is not None:
                used_views.add(record.buffer_view)
        for image in asset.images:
            if image.buffer_view is not None:
                used_views.add(image.buffer_view)
        for view_id in used_views:
            asset.get_buffer_view(view_id)
        view_map = self._index_map(len(asset.buffer_views), used_views)

        used_buffers = {asset.buffer_views[v].buffer for v in used_views}
        for buffer_id in used_buffers:
            if not 0 <= buffer_id < len(asset.buffers):
                raise StructuralError(f"Buffer {buffer_id} does not exist")
        buffer_map = self._index_map(len(asset.buffers), used_buffers)

        removed = (
            len(asset.accessors) - len(accessor_map),
            len(asset.buffer_views) - len(view_map),
            len(asset.buffers) - len(buffer_map),
        )

        asset.accessors = [a for i, a in enumerate(asset.accessors) if i in accessor_map]
        asset.buffer_views = [v for i, v in enumerate(asset.buffer_views) if i in view_map]
        asset.buffers = [b for i, b in enumerate(asset.buffers) if i in buffer_map]

        for view in asset.buffer_views:
            view.buffer = buffer_map[view.buffer]
        for accessor in asset.accessors:
            if accessor.buffer_view is not None:
                accessor.buffer_view = view_map[accessor.buffer_view]
            if accessor.sparse is not None:
                accessor.sparse.indices.buffer_view = view_map[accessor.sparse.indices.buffer_view]
                accessor.sparse.values.buffer_view = view_map[accessor.sparse.values.buffer_view]
        self._renumber_roots(accessor_map, view_map)

        if any(removed):
            logger.debug(
                f"Pruned {removed[0]} accessors, {removed[1]} bufferViews, {removed[2]} buffers")

    def _reachable_accessors(self) -> Set[int]:
        asset = self.asset
        used: Set[int] = set()
        for _, _, primitive in asset.iter_primitives():
            if primitive.indices is not None:
                used.add(primitive.indices)
            used.update(primitive.attributes.values())
            for target in primitive.targets or []:
                used.update(target.values())
        for animation in asset.animations:
            for sampler in animation.samplers:
                if sampler.input is not None:
                    used.add(sampler.input)
                if sampler.output is not None:
                    used.add(sampler.output)
        for record in asset.draco_animation_records:
            used.add(record.input)
            used.update(record.outputs)
        for skin in asset.skins:
            if skin.inverse_bind_matrices is not None:
                used.add(skin.inverse_bind_matrices)
        for attributes in self._instancing_attributes():
            used.update(attributes.values())
        for accessor_id in used:
            asset.get_accessor(accessor_id)
        return used

    def _instancing_attributes(self) -> List[Dict[str, int]]:
        """Attribute maps of EXT_mesh_gpu_instancing, edited in place on the raw node JSON."""
        maps = []
        for node in (self.asset.model_extra or {}).get("nodes") or []:
            extension = (node.get("extensions") or {}).get(GltfConstants.EXT_MESH_GPU_INSTANCING)
            if extension and extension.get("attributes"):
                maps.append(extension["attributes"])
        return maps

    @staticmethod
    def _index_map(size: int, used: Set[int]) -> Dict[int, int]:
        """Old id -> new id for kept elements, preserving order."""
        return {old: new for new, old in enumerate(i for i in range(size) if i in used)}

    def _renumber_roots(self, accessor_map: Dict[int, int], view_map: Dict[int, int]) -> None:
        asset = self.asset
        for _, _, primitive in asset.iter_primitives():
            if primitive.indices is not None:
                primitive.indices = accessor_map[primitive.indices]
            primitive.attributes = {s: accessor_map[a] for s, a in primitive.attributes.items()}
            if primitive.targets is not None:
                primitive.targets = [
                    {s: accessor_map[a] for s, a in target.items()} for target in primitive.targets]
            record = primitive.draco_extension
            if record is not None:
                record.buffer_view = view_map[record.buffer_view]
        for animation in asset.animations:
            for sampler in animation.samplers:
                if sampler.input is not None:
                    sampler.input = accessor_map[sampler.input]
                if sampler.output is not None:
                    sampler.output = accessor_map[sampler.output]
        for record in asset.draco_animation_records:
            record.input = accessor_map[record.input]
            record.outputs = [accessor_map[o] for o in record.outputs]
            if record.buffer_view is not None:
                record.buffer_view = view_map[record.buffer_view]
        for skin in asset.skins:
            if skin.inverse_bind_matrices is not None:
                skin.inverse_bind_matrices = accessor_map[skin.inverse_bind_matrices]
        for attributes in self._instancing_attributes():
            for semantic, accessor_id in attributes.items():
                attributes[semantic] = accessor_map[accessor_id]
        for image in asset.images:
            if image.buffer_view is not None:
                image.buffer_view = view_map[image.buffer_view]
