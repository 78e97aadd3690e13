"""
Command line interface.

    gltf-draco compress model.glb model-draco.glb --compression-level 10
    gltf-draco decompress model-draco.glb model.gltf
    gltf-draco compress-animations animated.glb animated-draco.glb
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .animation import DracoAnimationCompressor
from .compress import DracoMeshCompressor
from .decompress import DracoMeshDecompressor
from .dracopy_codec import DracoPyCodec
from .errors import DracoPipelineError
from .io import GltfIO
from .logging_config import setup_logging
from .options import DracoAnimationOptions, DracoOptions

logger = logging.getLogger(__name__)


def _add_io_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", type=Path, help="Input .gltf or .glb file")
    parser.add_argument("output", type=Path, help="Output .gltf or .glb file")
    parser.add_argument("--debug-directory", type=Path, default=None,
                        help="Write OBJ/PLY dumps of the data passed to the encoder here")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gltf-draco",
        description="Compress and decompress glTF meshes and animations with Draco.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    defaults = DracoOptions()
    compress = subparsers.add_parser("compress", help="Compress triangle meshes")
    _add_io_arguments(compress)
    compress.add_argument("--compression-level", type=int, default=defaults.compression_level,
                          help=f"0 to 10 (default: {defaults.compression_level})")
    compress.add_argument("--quantize-position-bits", type=int, default=defaults.quantize_position_bits,
                          help=f"0 to 30, 0 disables (default: {defaults.quantize_position_bits})")
    compress.add_argument("--quantize-normal-bits", type=int, default=defaults.quantize_normal_bits,
                          help=f"0 to 30, 0 disables (default: {defaults.quantize_normal_bits})")
    compress.add_argument("--quantize-texcoord-bits", type=int, default=defaults.quantize_texcoord_bits,
                          help=f"0 to 30, 0 disables (default: {defaults.quantize_texcoord_bits})")
    compress.add_argument("--quantize-color-bits", type=int, default=defaults.quantize_color_bits,
                          help=f"0 to 30, 0 disables (default: {defaults.quantize_color_bits})")
    compress.add_argument("--quantize-generic-bits", type=int, default=defaults.quantize_generic_bits,
                          help=f"0 to 30, 0 disables (default: {defaults.quantize_generic_bits})")
    compress.add_argument("--unified-quantization", action="store_true",
                          help="Quantize positions against the bounding box of all primitives")

    decompress = subparsers.add_parser("decompress", help="Decompress Draco meshes")
    decompress.add_argument("input", type=Path, help="Input .gltf or .glb file")
    decompress.add_argument("output", type=Path, help="Output .gltf or .glb file")

    animation_defaults = DracoAnimationOptions()
    animations = subparsers.add_parser("compress-animations", help="Compress animation samplers")
    _add_io_arguments(animations)
    animations.add_argument("--quantize-timestamps", type=int,
                            default=animation_defaults.quantize_timestamps,
                            help=f"0 to 30 (default: {animation_defaults.quantize_timestamps})")
    animations.add_argument("--quantize-keyframes", type=int,
                            default=animation_defaults.quantize_keyframes,
                            help=f"0 to 30 (default: {animation_defaults.quantize_keyframes})")
    return parser


def run(args: argparse.Namespace) -> None:
    """Load, process and save one asset according to parsed arguments."""
    if args.command == "compress":
        options = DracoOptions(
            compression_level=args.compression_level,
            quantize_position_bits=args.quantize_position_bits,
            quantize_normal_bits=args.quantize_normal_bits,
            quantize_texcoord_bits=args.quantize_texcoord_bits,
            quantize_color_bits=args.quantize_color_bits,
            quantize_generic_bits=args.quantize_generic_bits,
            unified_quantization=args.unified_quantization,
            debug_directory=args.debug_directory,
        )
    elif args.command == "compress-animations":
        options = DracoAnimationOptions(
            quantize_timestamps=args.quantize_timestamps,
            quantize_keyframes=args.quantize_keyframes,
            debug_directory=args.debug_directory,
        )

    asset = GltfIO.load(args.input)
    with DracoPyCodec() as codec:
        if args.command == "compress":
            DracoMeshCompressor(codec, options).compress(asset)
        elif args.command == "decompress":
            DracoMeshDecompressor(codec).decompress(asset)
        else:
            DracoAnimationCompressor(codec, options).compress(asset)
    GltfIO.save(asset, args.output)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)
    try:
        run(args)
    except ValidationError as exc:
        print(f"error: invalid options: {exc}", file=sys.stderr)
        return 2
    except (DracoPipelineError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return 0
