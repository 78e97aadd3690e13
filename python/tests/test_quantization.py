"""
Tests for attribute classes and quantization planning.
"""
import numpy as np
import pytest

from gltf_draco import Asset, AttributeClass, DracoOptions, QuantizationUtils, StructuralError


class TestAttributeClassForSemantic:
    def test_standard_semantics(self):
        assert QuantizationUtils.attribute_class_for_semantic("POSITION") == AttributeClass.POSITION
        assert QuantizationUtils.attribute_class_for_semantic("NORMAL") == AttributeClass.NORMAL
        assert QuantizationUtils.attribute_class_for_semantic("COLOR_0") == AttributeClass.COLOR
        assert QuantizationUtils.attribute_class_for_semantic("TEXCOORD_0") == AttributeClass.TEX_COORD
        assert QuantizationUtils.attribute_class_for_semantic("TEXCOORD_1") == AttributeClass.TEX_COORD

    def test_other_semantics_are_generic(self):
        assert QuantizationUtils.attribute_class_for_semantic("TANGENT") == AttributeClass.GENERIC
        assert QuantizationUtils.attribute_class_for_semantic("JOINTS_0") == AttributeClass.GENERIC
        assert QuantizationUtils.attribute_class_for_semantic("WEIGHTS_0") == AttributeClass.GENERIC

    def test_user_semantics_keep_full_name(self):
        """Test that a leading underscore is not treated as a base-name separator."""
        assert QuantizationUtils.attribute_class_for_semantic("_POSITION") == AttributeClass.GENERIC
        assert QuantizationUtils.attribute_class_for_semantic("_NORMAL_MAP") == AttributeClass.GENERIC


class TestUnifiedPositionBounds:
    """Test the shared bounding cube used by unified quantization."""

    def _add_box(self, builder, lower, upper):
        positions = np.array([lower, upper], dtype=np.float32)
        builder.add_triangle_mesh(positions, np.array([0, 1, 0], dtype=np.uint16))

    def test_three_primitives(self, builder):
        self._add_box(builder, [0, 0, 0], [1, 1, 1])
        self._add_box(builder, [-1, 0, 0], [0, 1, 1])
        self._add_box(builder, [0, -2, 0], [1, 0, 1])
        origin, range_ = QuantizationUtils.unified_position_bounds(builder.build())
        np.testing.assert_array_equal(origin, [-1, -2, 0])
        assert range_ == 3

    def test_bounds_from_data_when_min_max_missing(self, builder):
        positions = np.array([[2, 0, 0], [4, 1, 0.5]], dtype=np.float32)
        position_id = builder.add_accessor(positions, "VEC3", min_max=False)
        builder.add_primitive({"POSITION": position_id})
        origin, range_ = QuantizationUtils.unified_position_bounds(builder.build())
        np.testing.assert_array_equal(origin, [2, 0, 0])
        assert range_ == 2

    def test_non_vec3_position(self, builder):
        position_id = builder.add_accessor(np.zeros((3, 2), dtype=np.float32), "VEC2")
        builder.add_primitive({"POSITION": position_id})
        with pytest.raises(StructuralError, match="unified quantization"):
            QuantizationUtils.unified_position_bounds(builder.build())

    def test_no_positions(self, builder):
        builder.add_primitive({"COLOR_0": builder.add_accessor(np.zeros((3, 4), dtype=np.uint8), "VEC4")})
        assert QuantizationUtils.unified_position_bounds(builder.build()) is None


class TestQuantizationPlan:
    def test_plan_uses_option_bits(self, cube_asset):
        options = DracoOptions(quantize_position_bits=11, quantize_color_bits=0)
        plan = QuantizationUtils.plan(cube_asset, options)
        assert plan.bits[AttributeClass.POSITION] == 11
        assert plan.bits[AttributeClass.NORMAL] == 10
        assert plan.bits[AttributeClass.TEX_COORD] == 12
        assert plan.bits[AttributeClass.COLOR] == 0
        assert plan.bits[AttributeClass.GENERIC] == 12
        assert not plan.unified

    def test_unified_plan(self, cube_asset):
        plan = QuantizationUtils.plan(cube_asset, DracoOptions(unified_quantization=True))
        assert plan.unified
        np.testing.assert_array_almost_equal(plan.position_origin, [-0.5, -0.5, -0.5])
        assert plan.position_range == pytest.approx(1.0)

    def test_unified_plan_without_positions(self):
        plan = QuantizationUtils.plan(Asset(), DracoOptions(unified_quantization=True))
        assert not plan.unified
        assert plan.position_range is None

    def test_apply_skips_zero_bits(self, codec, cube_asset):
        plan = QuantizationUtils.plan(cube_asset, DracoOptions(
            quantize_position_bits=0, quantize_normal_bits=8, quantize_texcoord_bits=0,
            quantize_color_bits=0, quantize_generic_bits=0))
        encoder = codec.create_mesh_encoder()
        QuantizationUtils.apply(encoder, plan)
        assert encoder.bits == {AttributeClass.NORMAL: 8}
        assert encoder.explicit == {}

    def test_apply_unified_uses_explicit_quantization(self, codec, cube_asset):
        plan = QuantizationUtils.plan(cube_asset, DracoOptions(unified_quantization=True))
        encoder = codec.create_mesh_encoder()
        QuantizationUtils.apply(encoder, plan)
        origin, range_ = encoder.explicit[AttributeClass.POSITION]
        np.testing.assert_array_almost_equal(origin, [-0.5, -0.5, -0.5])
        assert range_ == pytest.approx(1.0)
        assert encoder.bits[AttributeClass.POSITION] == 14
        assert AttributeClass.NORMAL not in encoder.explicit
