"""
Quantization planning for mesh compression.

Maps glTF semantics to codec attribute classes and decides how many bits
each class gets. With unified quantization every POSITION attribute of the
asset is quantized against one shared cube, so neighbouring primitives keep
matching vertex positions after decoding.
"""

import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

import numpy as np
from pydantic import BaseModel, Field

from .codec import AttributeClass, MeshEncoder
from .constants import GltfConstants
from .errors import StructuralError
from .options import DracoOptions
from .utils.accessor_utils import AccessorUtils

if TYPE_CHECKING:
    from .asset import Asset

logger = logging.getLogger(__name__)

_SEMANTIC_CLASSES = {
    "POSITION": AttributeClass.POSITION,
    "NORMAL": AttributeClass.NORMAL,
    "COLOR": AttributeClass.COLOR,
    "TEXCOORD": AttributeClass.TEX_COORD,
}


class QuantizationPlan(BaseModel):
    """Bits per attribute class plus the optional unified position cube."""

    bits: Dict[AttributeClass, int] = Field(default_factory=dict)
    position_origin: Optional[List[float]] = Field(
        None, description="Min corner of the unified bounding box")
    position_range: Optional[float] = Field(
        None, description="Largest extent of the unified bounding box")

    @property
    def unified(self) -> bool:
        return self.position_origin is not None


class QuantizationUtils:
    """Utility class for quantization decisions."""

    @staticmethod
    def attribute_class_for_semantic(semantic: str) -> AttributeClass:
        """
        Get the codec attribute class of a glTF semantic.

        The base name is the part before the first underscore (``TEXCOORD_0``
        -> ``TEXCOORD``). Semantics starting with an underscore are user
        defined and keep their full name, so they map to GENERIC.

        Args:
            semantic: glTF attribute semantic

        Returns:
            AttributeClass, GENERIC for anything not recognized
        """
        base = semantic
        underscore = semantic.find("_")
        if underscore > 0:
            base = semantic[:underscore]
        return _SEMANTIC_CLASSES.get(base, AttributeClass.GENERIC)

    @staticmethod
    def unified_position_bounds(asset: "Asset") -> Optional[Tuple[List[float], float]]:
        """
        Compute the bounding cube of every POSITION accessor in the asset.

        Args:
            asset: Asset to scan

        Returns:
            Tuple of (origin, range): the min corner and the largest extent,
            or None when the asset holds no positions

        Raises:
            StructuralError: If a POSITION accessor is not VEC3
        """
        lower = np.full(3, np.inf)
        upper = np.full(3, -np.inf)
        found = False
        for _, _, primitive in asset.iter_primitives():
            accessor_id = primitive.attributes.get(GltfConstants.POSITION)
            if accessor_id is None:
                continue
            accessor = asset.get_accessor(accessor_id)
            if accessor.type != "VEC3":
                raise StructuralError(
                    "Could not perform unified quantization: position accessor "
                    f"{accessor_id} has type {accessor.type}, expected VEC3")
            if accessor.min is not None and accessor.max is not None:
                acc_min = np.asarray(accessor.min[:3], dtype=np.float64)
                acc_max = np.asarray(accessor.max[:3], dtype=np.float64)
            else:
                positions = AccessorUtils.read_elements(asset, accessor).astype(np.float64)
                if len(positions) == 0:
                    continue
                acc_min = positions.min(axis=0)
                acc_max = positions.max(axis=0)
            lower = np.minimum(lower, acc_min)
            upper = np.maximum(upper, acc_max)
            found = True

        if not found:
            return None

        extent = upper - lower
        return lower.tolist(), float(extent.max())

    @staticmethod
    def plan(asset: "Asset", options: DracoOptions) -> QuantizationPlan:
        """
        Build the quantization plan for one compress run.

        Args:
            asset: Asset being compressed
            options: Validated options

        Returns:
            QuantizationPlan
        """
        plan = QuantizationPlan(bits={
            AttributeClass.POSITION: options.quantize_position_bits,
            AttributeClass.NORMAL: options.quantize_normal_bits,
            AttributeClass.TEX_COORD: options.quantize_texcoord_bits,
            AttributeClass.COLOR: options.quantize_color_bits,
            AttributeClass.GENERIC: options.quantize_generic_bits,
        })
        if options.unified_quantization and options.quantize_position_bits > 0:
            bounds = QuantizationUtils.unified_position_bounds(asset)
            if bounds is None:
                logger.debug("Unified quantization requested but the asset has no positions")
            else:
                plan.position_origin, plan.position_range = bounds
                logger.info(f"Unified position quantization: origin={bounds[0]} range={bounds[1]:g}")
        return plan

    @staticmethod
    def apply(encoder: MeshEncoder, plan: QuantizationPlan) -> None:
        """Configure an encoder; classes with 0 bits stay unquantized."""
        for attribute_class, bits in plan.bits.items():
            if bits <= 0:
                continue
            if attribute_class == AttributeClass.POSITION and plan.unified:
                encoder.set_attribute_explicit_quantization(
                    attribute_class, bits, 3, plan.position_origin, plan.position_range)
            else:
                encoder.set_attribute_quantization(attribute_class, bits)
