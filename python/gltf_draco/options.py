"""
Configuration for the compression passes.

Options are validated when the model is built, so an out-of-range value
raises ``pydantic.ValidationError`` before any asset is processed. Fields
accept both snake_case names and the camelCase names used by glTF tooling
(``compressionLevel``, ``quantizePositionBits``, ...).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .common import PathLike

MAX_QUANTIZATION_BITS = 30


class DracoOptions(BaseModel):
    """Options for mesh compression."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid", frozen=True)

    compression_level: int = Field(7, ge=0, le=10, description="0 (fastest) to 10 (smallest)")
    quantize_position_bits: int = Field(14, ge=0, le=MAX_QUANTIZATION_BITS)
    quantize_normal_bits: int = Field(10, ge=0, le=MAX_QUANTIZATION_BITS)
    quantize_texcoord_bits: int = Field(12, ge=0, le=MAX_QUANTIZATION_BITS)
    quantize_color_bits: int = Field(8, ge=0, le=MAX_QUANTIZATION_BITS)
    quantize_generic_bits: int = Field(12, ge=0, le=MAX_QUANTIZATION_BITS)
    unified_quantization: bool = Field(
        False, description="Quantize all positions of the asset against one bounding cube")
    debug_directory: Optional[PathLike] = Field(
        None, description="Write an OBJ dump of every compressed primitive here")

    @property
    def encoding_speed(self) -> int:
        """Codec speed setting; higher compression means lower speed."""
        return 10 - self.compression_level


class DracoAnimationOptions(BaseModel):
    """Options for keyframe animation compression."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid", frozen=True)

    quantize_timestamps: int = Field(16, ge=0, le=MAX_QUANTIZATION_BITS)
    quantize_keyframes: int = Field(16, ge=0, le=MAX_QUANTIZATION_BITS)
    debug_directory: Optional[PathLike] = Field(
        None, description="Write a PLY dump of every timeline here")
