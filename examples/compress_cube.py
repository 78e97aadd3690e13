"""
Build a colored cube glTF, compress it with Draco and decompress it again.
The three files are written next to this script for inspection in a viewer.
"""

import os
import numpy as np

from gltf_draco import Asset, DracoMeshCompressor, DracoMeshDecompressor, DracoOptions, GltfIO, setup_logging
from gltf_draco.dracopy_codec import DracoPyCodec


def generate_cube_asset():
    """Generate a glTF asset holding a single cube mesh."""
    vertices = np.array([
        [-0.5, -0.5, -0.5],
        [0.5, -0.5, -0.5],
        [0.5, 0.5, -0.5],
        [-0.5, 0.5, -0.5],
        [-0.5, -0.5, 0.5],
        [0.5, -0.5, 0.5],
        [0.5, 0.5, 0.5],
        [-0.5, 0.5, 0.5]
    ], dtype=np.float32)

    indices = np.array([
        0, 1, 2, 2, 3, 0,  # front
        1, 5, 6, 6, 2, 1,  # right
        5, 4, 7, 7, 6, 5,  # back
        4, 0, 3, 3, 7, 4,  # left
        3, 2, 6, 6, 7, 3,  # top
        4, 5, 1, 1, 0, 4   # bottom
    ], dtype=np.uint16)

    normals = vertices / np.linalg.norm(vertices, axis=1, keepdims=True)

    # RGBA, normalized bytes
    colors = np.array([
        [255, 0, 0, 255],
        [0, 255, 0, 255],
        [0, 0, 255, 255],
        [255, 255, 0, 255],
        [255, 0, 255, 255],
        [0, 255, 255, 255],
        [128, 128, 128, 255],
        [255, 255, 255, 255]
    ], dtype=np.uint8)

    data = vertices.tobytes() + normals.astype(np.float32).tobytes() + colors.tobytes() + indices.tobytes()
    document = {
        "asset": {"version": "2.0", "generator": "gltf-draco example"},
        "scene": 0,
        "scenes": [{"nodes": [0]}],
        "nodes": [{"mesh": 0, "name": "Cube"}],
        "meshes": [{"name": "Cube", "primitives": [{
            "attributes": {"POSITION": 0, "NORMAL": 1, "COLOR_0": 2},
            "indices": 3,
            "mode": 4,
        }]}],
        "buffers": [{"byteLength": len(data)}],
        "bufferViews": [
            {"buffer": 0, "byteOffset": 0, "byteLength": 96, "target": 34962},
            {"buffer": 0, "byteOffset": 96, "byteLength": 96, "target": 34962},
            {"buffer": 0, "byteOffset": 192, "byteLength": 32, "target": 34962},
            {"buffer": 0, "byteOffset": 224, "byteLength": 72, "target": 34963},
        ],
        "accessors": [
            {"bufferView": 0, "componentType": 5126, "count": 8, "type": "VEC3",
             "min": [-0.5, -0.5, -0.5], "max": [0.5, 0.5, 0.5]},
            {"bufferView": 1, "componentType": 5126, "count": 8, "type": "VEC3"},
            {"bufferView": 2, "componentType": 5121, "normalized": True, "count": 8, "type": "VEC4"},
            {"bufferView": 3, "componentType": 5123, "count": 36, "type": "SCALAR"},
        ],
    }
    return Asset.from_dict(document, [data])


def main():
    """Write cube.glb, cube-draco.glb and cube-restored.gltf."""
    setup_logging()
    output_dir = os.path.dirname(os.path.abspath(__file__))

    asset = generate_cube_asset()
    original_path = GltfIO.save(asset, os.path.join(output_dir, "cube.glb"))

    with DracoPyCodec() as codec:
        DracoMeshCompressor(codec, DracoOptions(compression_level=10)).compress(asset)
        compressed_path = GltfIO.save(asset, os.path.join(output_dir, "cube-draco.glb"))

        DracoMeshDecompressor(codec).decompress(asset)
        restored_path = GltfIO.save(asset, os.path.join(output_dir, "cube-restored.gltf"))

    print(f"Original:   {original_path} ({os.path.getsize(original_path)} bytes)")
    print(f"Compressed: {compressed_path} ({os.path.getsize(compressed_path)} bytes)")
    print(f"Restored:   {restored_path}")


if __name__ == "__main__":
    main()
