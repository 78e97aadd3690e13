"""Constants for glTF documents and the Draco extensions."""


class GltfConstants:
    """glTF 2.0 enumerations and extension names used by the passes."""

    KHR_DRACO_MESH_COMPRESSION = "KHR_draco_mesh_compression"
    """Per-primitive mesh compression extension."""

    DRACO_ANIMATION_COMPRESSION = "Draco_animation_compression"
    """Asset-level keyframe animation compression extension."""

    EXT_MESH_GPU_INSTANCING = "EXT_mesh_gpu_instancing"
    """Node extension whose per-instance attributes are accessors."""

    # Primitive draw modes
    MODE_POINTS = 0
    MODE_LINES = 1
    MODE_LINE_LOOP = 2
    MODE_LINE_STRIP = 3
    MODE_TRIANGLES = 4
    MODE_TRIANGLE_STRIP = 5
    MODE_TRIANGLE_FAN = 6

    TYPE_COMPONENT_COUNT = {
        "SCALAR": 1,
        "VEC2": 2,
        "VEC3": 3,
        "VEC4": 4,
        "MAT2": 4,
        "MAT3": 9,
        "MAT4": 16,
    }
    """Number of components per element for each accessor type."""

    POSITION = "POSITION"

    # bufferView targets
    ARRAY_BUFFER = 34962
    ELEMENT_ARRAY_BUFFER = 34963


class GlbConstants:
    """Binary glTF container layout."""

    MAGIC = b"glTF"
    VERSION = 2
    HEADER_LENGTH = 12
    CHUNK_HEADER_LENGTH = 8
    CHUNK_TYPE_JSON = 0x4E4F534A  # b"JSON"
    CHUNK_TYPE_BIN = 0x004E4942  # b"BIN\0"
    ALIGNMENT = 4

    DATA_URI_PREFIX = "data:application/octet-stream;base64,"

    @staticmethod
    def padded_length(length: int, alignment: int = ALIGNMENT) -> int:
        """Round length up to the next multiple of alignment.

        Args:
            length: Unpadded length in bytes
            alignment: Required alignment

        Returns:
            Padded length in bytes
        """
        return (length + alignment - 1) // alignment * alignment
