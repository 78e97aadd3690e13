"""
Loading and saving glTF assets.

Supports binary ``.glb`` containers and ``.gltf`` JSON with buffers stored as
base64 data URIs or as files next to the JSON.
"""

import base64
import json
import logging
import struct
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

from .asset import Asset, Buffer
from .common import PathLike
from .constants import GlbConstants
from .errors import AssetFormatError

logger = logging.getLogger(__name__)


class GltfIO:
    """Static helpers to read and write assets."""

    @staticmethod
    def load(path: PathLike) -> Asset:
        """
        Load a .glb or .gltf file.

        Args:
            path: File to read

        Returns:
            Asset with every resolvable buffer's bytes attached

        Raises:
            AssetFormatError: If the file is not a valid glTF container
        """
        path = Path(path)
        if path.suffix.lower() == ".glb":
            data, bin_chunk = GltfIO.read_glb(path.read_bytes())
        else:
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                raise AssetFormatError(f"Invalid glTF JSON in {path}: {e}") from e
            bin_chunk = None

        buffers = GltfIO._resolve_buffers(data.get("buffers", []), path.parent, bin_chunk)
        asset = Asset.from_dict(data, buffers)
        logger.info(f"Loaded {path} ({len(asset.meshes)} meshes, {len(asset.accessors)} accessors)")
        return asset

    @staticmethod
    def save(asset: Asset, path: PathLike) -> Path:
        """
        Save an asset as .glb or .gltf, chosen by the file suffix.

        The in-memory asset is not modified.

        Args:
            asset: Asset to write
            path: Output file

        Returns:
            Path written
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        copy = asset.model_copy(deep=True)
        if path.suffix.lower() == ".glb":
            bin_chunk = GltfIO._pack_buffers(copy)
            path.write_bytes(GltfIO.write_glb(copy.to_dict(), bin_chunk))
        else:
            GltfIO._embed_buffers(copy)
            path.write_text(json.dumps(copy.to_dict(), indent=2), encoding="utf-8")
        logger.info(f"Saved {path}")
        return path

    # ============================================================
    # GLB container
    # ============================================================

    @staticmethod
    def read_glb(data: bytes) -> Tuple[Dict[str, Any], Optional[bytes]]:
        """
        Split a GLB container into its JSON document and BIN chunk.

        Raises:
            AssetFormatError: If the header or chunk layout is invalid
        """
        if len(data) < GlbConstants.HEADER_LENGTH:
            raise AssetFormatError("Invalid GLB: file too small")
        magic, version, total_length = struct.unpack_from("<4sII", data, 0)
        if magic != GlbConstants.MAGIC:
            raise AssetFormatError("Invalid GLB: bad magic")
        if version != GlbConstants.VERSION:
            raise AssetFormatError(f"Unsupported GLB version: {version} (expected {GlbConstants.VERSION})")
        if total_length > len(data):
            raise AssetFormatError("Invalid GLB: length mismatch")

        json_chunk: Optional[bytes] = None
        bin_chunk: Optional[bytes] = None
        offset = GlbConstants.HEADER_LENGTH
        while offset < total_length:
            if offset + GlbConstants.CHUNK_HEADER_LENGTH > total_length:
                raise AssetFormatError("Invalid GLB: truncated chunk header")
            chunk_length, chunk_type = struct.unpack_from("<II", data, offset)
            offset += GlbConstants.CHUNK_HEADER_LENGTH
            if offset + chunk_length > total_length:
                raise AssetFormatError("Invalid GLB: truncated chunk data")
            chunk = data[offset:offset + chunk_length]
            offset += chunk_length
            if chunk_type == GlbConstants.CHUNK_TYPE_JSON and json_chunk is None:
                json_chunk = chunk
            elif chunk_type == GlbConstants.CHUNK_TYPE_BIN and bin_chunk is None:
                bin_chunk = chunk

        if json_chunk is None:
            raise AssetFormatError("Invalid GLB: missing JSON chunk")
        try:
            document = json.loads(json_chunk.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise AssetFormatError(f"Invalid GLB JSON chunk: {e}") from e
        if not isinstance(document, dict):
            raise AssetFormatError("Invalid GLB: JSON root is not an object")
        return document, bin_chunk

    @staticmethod
    def write_glb(document: Dict[str, Any], bin_chunk: Optional[bytes]) -> bytes:
        """Build a GLB container; the BIN chunk is omitted when ``bin_chunk`` is None."""
        json_bytes = json.dumps(document, separators=(",", ":")).encode("utf-8")
        json_bytes += b" " * (GlbConstants.padded_length(len(json_bytes)) - len(json_bytes))
        chunks = struct.pack("<II", len(json_bytes), GlbConstants.CHUNK_TYPE_JSON) + json_bytes
        if bin_chunk is not None:
            bin_chunk += b"\x00" * (GlbConstants.padded_length(len(bin_chunk)) - len(bin_chunk))
            chunks += struct.pack("<II", len(bin_chunk), GlbConstants.CHUNK_TYPE_BIN) + bin_chunk
        total_length = GlbConstants.HEADER_LENGTH + len(chunks)
        header = struct.pack("<4sII", GlbConstants.MAGIC, GlbConstants.VERSION, total_length)
        return header + chunks

    # ============================================================
    # Buffers
    # ============================================================

    @staticmethod
    def _resolve_buffers(buffers: List[Dict[str, Any]], base_dir: Path,
                         bin_chunk: Optional[bytes]) -> List[Optional[bytes]]:
        resolved: List[Optional[bytes]] = []
        for index, buffer in enumerate(buffers):
            uri = buffer.get("uri")
            if uri is None:
                if bin_chunk is None:
                    raise AssetFormatError(f"Buffer {index} has no uri and there is no BIN chunk")
                resolved.append(bin_chunk[:buffer.get("byteLength", len(bin_chunk))])
                bin_chunk = None  # only the first uri-less buffer binds to the BIN chunk
            elif uri.startswith("data:"):
                _, _, encoded = uri.partition(",")
                resolved.append(base64.b64decode(encoded))
            else:
                file_path = base_dir / unquote(uri)
                if not file_path.is_file():
                    raise AssetFormatError(f"Buffer {index} file not found: {file_path}")
                resolved.append(file_path.read_bytes())
        return resolved

    @staticmethod
    def _pack_buffers(asset: Asset) -> Optional[bytes]:
        """Merge every buffer into one, rebasing bufferViews; returns the BIN chunk."""
        if not asset.buffers:
            return None
        offsets: List[int] = []
        chunk = bytearray()
        for index, buffer in enumerate(asset.buffers):
            if buffer.data is None:
                raise AssetFormatError(f"Buffer {index} has no data to embed")
            chunk += b"\x00" * (GlbConstants.padded_length(len(chunk)) - len(chunk))
            offsets.append(len(chunk))
            chunk += buffer.data
        for view in asset.buffer_views:
            view.byte_offset += offsets[view.buffer]
            view.buffer = 0
        asset.buffers = [Buffer(byte_length=len(chunk), data=bytes(chunk))]
        return bytes(chunk)

    @staticmethod
    def _embed_buffers(asset: Asset) -> None:
        for buffer in asset.buffers:
            if buffer.data is None:
                continue
            buffer.uri = GlbConstants.DATA_URI_PREFIX + base64.b64encode(buffer.data).decode("ascii")
            buffer.byte_length = len(buffer.data)
