"""
Tests for the mesh decompression pass.
"""
import numpy as np
import pytest

from gltf_draco import (
    CodecError,
    ComponentType,
    DracoMeshCompressor,
    DracoMeshDecompressor,
    DracoOptions,
    GltfConstants,
    StructuralError,
)
from gltf_draco.utils import AccessorUtils

LOSSLESS = DracoOptions(
    quantize_position_bits=0, quantize_normal_bits=0, quantize_texcoord_bits=0,
    quantize_color_bits=0, quantize_generic_bits=0)


class TestDecompress:
    @pytest.fixture(autouse=True)
    def setup(self, codec, cube_asset):
        self.codec = codec
        self.asset = cube_asset
        DracoMeshCompressor(codec, LOSSLESS).compress(cube_asset)
        self.primitive = cube_asset.meshes[0].primitives[0]

    def test_accessors_get_data_back(self, cube_vertices, cube_indices):
        DracoMeshDecompressor(self.codec).decompress(self.asset)

        position = self.asset.get_accessor(self.primitive.attributes["POSITION"])
        assert position.count == 8
        assert position.component_type == ComponentType.FLOAT
        assert self.asset.buffer_views[position.buffer_view].target == GltfConstants.ARRAY_BUFFER
        np.testing.assert_array_equal(AccessorUtils.read_elements(self.asset, position), cube_vertices)

        indices = self.asset.get_accessor(self.primitive.indices)
        assert indices.count == 36
        assert self.asset.buffer_views[indices.buffer_view].target == GltfConstants.ELEMENT_ARRAY_BUFFER
        np.testing.assert_array_equal(AccessorUtils.read_packed(self.asset, indices), cube_indices)

    def test_extension_removed(self):
        DracoMeshDecompressor(self.codec).decompress(self.asset)

        assert self.primitive.extensions is None
        assert GltfConstants.KHR_DRACO_MESH_COMPRESSION not in self.asset.extensions_used
        assert GltfConstants.KHR_DRACO_MESH_COMPRESSION not in self.asset.extensions_required
        assert "extensionsUsed" not in self.asset.to_dict()

    def test_payload_is_pruned(self):
        DracoMeshDecompressor(self.codec).decompress(self.asset)
        # One buffer per decoded accessor, the payload buffer is gone
        assert len(self.asset.buffers) == 4
        assert len(self.asset.buffer_views) == 4
        for buffer in self.asset.buffers:
            assert not buffer.data.startswith(b"DRACO")

    def test_other_primitive_extensions_survive(self):
        self.primitive.extensions.KHR_materials_variants = {"mappings": []}
        DracoMeshDecompressor(self.codec).decompress(self.asset)

        assert self.primitive.extensions is not None
        assert self.primitive.draco_extension is None
        assert "KHR_materials_variants" in self.asset.to_dict()["meshes"][0]["primitives"][0]["extensions"]

    def test_component_type_follows_decoded_data(self):
        normal = self.asset.get_accessor(self.primitive.attributes["NORMAL"])
        normal.component_type = int(ComponentType.SHORT)
        DracoMeshDecompressor(self.codec).decompress(self.asset)
        assert normal.component_type == ComponentType.FLOAT

    def test_handles_are_released(self):
        DracoMeshDecompressor(self.codec).decompress(self.asset)
        assert self.codec.created == self.codec.released

    def test_decoding_failure(self):
        self.codec.fail_decode = True
        with pytest.raises(CodecError, match="corrupt payload"):
            DracoMeshDecompressor(self.codec).decompress(self.asset)
        assert self.codec.created == self.codec.released

    def test_not_a_draco_payload(self):
        view = self.asset.buffer_views[self.primitive.draco_extension.buffer_view]
        buffer = self.asset.buffers[view.buffer]
        buffer.data = b"XXXXX" + buffer.data[5:]
        with pytest.raises(CodecError, match="not a Draco payload"):
            DracoMeshDecompressor(self.codec).decompress(self.asset)
        assert self.codec.decode_calls == 0

    def test_unknown_unique_id(self):
        self.primitive.draco_extension.attributes["POSITION"] = 99
        with pytest.raises(CodecError, match="no attribute with id 99"):
            DracoMeshDecompressor(self.codec).decompress(self.asset)

    def test_compressed_semantic_without_accessor(self):
        self.primitive.draco_extension.attributes["COLOR_0"] = 0
        with pytest.raises(StructuralError, match="COLOR_0"):
            DracoMeshDecompressor(self.codec).decompress(self.asset)


class TestDecompressVariants:
    """Test point clouds, missing positions and shared payloads."""

    def test_point_cloud_loses_indices(self, codec, cube_asset, cube_vertices):
        codec.point_cloud = True
        DracoMeshCompressor(codec, LOSSLESS).compress(cube_asset)
        DracoMeshDecompressor(codec).decompress(cube_asset)

        primitive = cube_asset.meshes[0].primitives[0]
        assert primitive.indices is None
        assert len(cube_asset.accessors) == 3
        position = cube_asset.get_accessor(primitive.attributes["POSITION"])
        np.testing.assert_array_equal(AccessorUtils.read_elements(cube_asset, position), cube_vertices)

    def test_missing_position(self, codec, builder, cube_normals, cube_indices):
        normal_id = builder.add_accessor(cube_normals, "VEC3")
        index_id = builder.add_accessor(cube_indices, "SCALAR", min_max=False)
        builder.add_primitive({"NORMAL": normal_id}, index_id)
        asset = builder.build()
        DracoMeshCompressor(codec).compress(asset)

        with pytest.raises(CodecError, match="no position attribute"):
            DracoMeshDecompressor(codec).decompress(asset)

    def test_shared_payload_decoded_once(self, codec, builder, cube_vertices, cube_indices):
        first = builder.add_triangle_mesh(cube_vertices, cube_indices)
        second = builder.add_primitive(dict(first.attributes), first.indices)
        asset = builder.build()
        DracoMeshCompressor(codec, LOSSLESS).compress(asset)

        DracoMeshDecompressor(codec).decompress(asset)

        assert codec.decode_calls == 1
        assert first.draco_extension is None
        assert second.draco_extension is None
        assert first.attributes == second.attributes
        assert first.indices == second.indices
        position = asset.get_accessor(second.attributes["POSITION"])
        np.testing.assert_array_equal(AccessorUtils.read_elements(asset, position), cube_vertices)

    def test_uncompressed_asset_untouched(self, codec, cube_asset):
        before = cube_asset.to_dict()
        DracoMeshDecompressor(codec).decompress(cube_asset)
        assert cube_asset.to_dict() == before
        assert codec.created == 0

    def test_uint32_indices_keep_their_type(self, codec, builder, cube_vertices, cube_indices):
        builder.add_triangle_mesh(cube_vertices, cube_indices.astype(np.uint32))
        asset = builder.build()
        DracoMeshCompressor(codec).compress(asset)
        DracoMeshDecompressor(codec).decompress(asset)

        indices = asset.get_accessor(asset.meshes[0].primitives[0].indices)
        assert indices.component_type == ComponentType.UNSIGNED_INT
        assert AccessorUtils.read_packed(asset, indices).dtype == np.uint32

    def test_decoded_points_overflow_index_type(self, codec, builder, cube_vertices, cube_indices):
        builder.add_triangle_mesh(cube_vertices, cube_indices.astype(np.uint8))
        asset = builder.build()
        DracoMeshCompressor(codec).compress(asset)
        codec.extra_points = 300

        with pytest.raises(StructuralError, match="do not fit uint8 indices"):
            DracoMeshDecompressor(codec).decompress(asset)
        assert codec.released == codec.created
