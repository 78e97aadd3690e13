"""
Keyframe animation compression pass.

Samplers that share an input accessor form one timeline. Each timeline is
encoded into one Draco_animation_compression payload holding the timestamps
and every output of the timeline.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Set

import numpy as np

from .asset import Asset, DracoAnimationCompression
from .codec import Codec
from .constants import GltfConstants
from .errors import CodecError, ConsistencyError, StructuralError
from .options import DracoAnimationOptions
from .rewriter import AssetGraphRewriter
from .utils.accessor_utils import AccessorUtils
from .utils.debug_export import DebugExportUtils

logger = logging.getLogger(__name__)


class DracoAnimationCompressor:
    """Compresses animation sampler data with a codec."""

    def __init__(self, codec: Codec, options: Optional[DracoAnimationOptions] = None):
        self.codec = codec
        self.options = options if options is not None else DracoAnimationOptions()

    def compress(self, asset: Asset) -> Asset:
        """
        Compress all animation samplers in place.

        Args:
            asset: Asset to rewrite

        Returns:
            The same asset, untouched when it has no samplers

        Raises:
            StructuralError: If a sampler lacks input, output or interpolation
            ConsistencyError: If an accessor is used by two timelines or twice in one
            CodecError: If a keyframe attribute is refused or the encode fails
        """
        timelines = self.collect_timelines(asset)
        if not timelines:
            logger.debug("No animation samplers to compress")
            return asset

        rewriter = AssetGraphRewriter(asset)
        records: List[DracoAnimationCompression] = []
        for input_id, outputs in timelines.items():
            payload, attribute_ids = self._encode_timeline(asset, input_id, outputs)
            record = DracoAnimationCompression(
                input=input_id, outputs=list(outputs), attributes_id=attribute_ids)
            rewriter.attach_compressed_animation(record, payload)
            logger.info(
                f"Timeline input:{input_id} with {len(outputs)} outputs -> {len(payload)} bytes")
            records.append(record)

        for record in records:
            record.input = rewriter.strip_animation_accessor(record.input)
            record.outputs = [rewriter.strip_animation_accessor(o) for o in record.outputs]

        for record in records:
            asset.add_draco_animation_record(record)
        asset.add_extension_required(GltfConstants.DRACO_ANIMATION_COMPRESSION)
        rewriter.prune_unused()
        return asset

    @staticmethod
    def collect_timelines(asset: Asset) -> Dict[int, List[int]]:
        """
        Group sampler outputs by input accessor, in encounter order.

        Raises:
            StructuralError: If a sampler lacks input, output or interpolation
            ConsistencyError: If an input is also an output, or an output repeats
        """
        timelines: Dict[int, List[int]] = {}
        seen_outputs: Set[int] = set()
        for animation_index, animation in enumerate(asset.animations):
            for sampler_index, sampler in enumerate(animation.samplers):
                label = f"animation {animation_index} sampler {sampler_index}"
                if sampler.input is None or sampler.output is None:
                    raise StructuralError(f"{label}: missing input/output")
                if sampler.interpolation is None:
                    raise StructuralError(f"{label}: missing interpolation method")
                if sampler.output in seen_outputs:
                    raise ConsistencyError(
                        f"{label}: output accessor {sampler.output} is used by another sampler")
                seen_outputs.add(sampler.output)
                timelines.setdefault(sampler.input, []).append(sampler.output)

        shared = seen_outputs.intersection(timelines)
        if shared:
            raise ConsistencyError(
                f"Accessors {sorted(shared)} are used both as animation input and output")
        return timelines

    def _encode_timeline(self, asset: Asset, input_id: int, outputs: List[int]):
        timestamps = AccessorUtils.read_packed(asset, asset.get_accessor(input_id)).astype(np.float32)
        keyframes: List[np.ndarray] = []
        attribute_ids: List[int] = []

        with self.codec.create_animation_encoder() as encoder:
            encoder.set_timestamps(timestamps)
            for output_id in outputs:
                accessor = asset.get_accessor(output_id)
                components = AccessorUtils.components_for_type(accessor.type)
                values = AccessorUtils.read_packed(asset, accessor).astype(np.float32)
                attribute_id = encoder.add_keyframes(components, values)
                if attribute_id <= 0:
                    raise CodecError(f"Failed adding keyframes of accessor {output_id}")
                attribute_ids.append(attribute_id)
                keyframes.append(values.reshape(len(timestamps), -1))

            encoder.set_timestamps_quantization(self.options.quantize_timestamps)
            encoder.set_keyframes_quantization(self.options.quantize_keyframes)
            payload = encoder.encode()

        if not payload:
            raise CodecError(f"Animation encoding failed for input {input_id}")

        if self.options.debug_directory is not None:
            DebugExportUtils.write_ply(
                Path(self.options.debug_directory) / DebugExportUtils.animation_ply_name(input_id),
                timestamps, keyframes)
        return payload, attribute_ids
