"""
Debug dumps of the data handed to the codec.

Writes one Wavefront OBJ per compressed primitive and one ASCII PLY per
animation timeline. The files are only written, never read back.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from ..common import PathLike

logger = logging.getLogger(__name__)


def _format_row(values: Sequence[float]) -> str:
    return " ".join(f"{float(v):g}" for v in values)


class DebugExportUtils:
    """Writers for OBJ and PLY debug files."""

    @staticmethod
    def primitive_obj_name(mesh_index: int, primitive_index: int) -> str:
        return f"gltf_mesh-{mesh_index}_primitive-{primitive_index}.obj"

    @staticmethod
    def animation_ply_name(input_accessor: int) -> str:
        return f"animation_input_{input_accessor}.ply"

    @staticmethod
    def write_obj(
        path: PathLike,
        positions: np.ndarray,
        faces: np.ndarray,
        texcoords: Optional[np.ndarray] = None,
        normals: Optional[np.ndarray] = None,
    ) -> Path:
        """
        Write a triangle mesh as OBJ.

        Args:
            path: Output file
            positions: (n, 3) positions
            faces: (m, 3) zero-based vertex indices
            texcoords: Optional (n, 2) texture coordinates
            normals: Optional (n, 3) normals

        Returns:
            Path written
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        lines: List[str] = []
        lines.extend(f"v {_format_row(p)}" for p in np.asarray(positions).reshape(-1, 3))
        if texcoords is not None:
            lines.extend(f"vt {_format_row(t)}" for t in np.asarray(texcoords).reshape(len(positions), -1))
        if normals is not None:
            lines.extend(f"vn {_format_row(n)}" for n in np.asarray(normals).reshape(-1, 3))

        has_vt = texcoords is not None
        has_vn = normals is not None
        for face in np.asarray(faces, dtype=np.int64).reshape(-1, 3) + 1:
            if has_vt and has_vn:
                refs = [f"{i}/{i}/{i}" for i in face]
            elif has_vt:
                refs = [f"{i}/{i}" for i in face]
            elif has_vn:
                refs = [f"{i}//{i}" for i in face]
            else:
                refs = [str(i) for i in face]
            lines.append("f " + " ".join(refs))

        path.write_text("\n".join(lines) + "\n")
        logger.debug(f"Wrote debug mesh {path}")
        return path

    @staticmethod
    def write_ply(path: PathLike, timestamps: np.ndarray, outputs: Sequence[np.ndarray]) -> Path:
        """
        Write a keyframe timeline as an ASCII PLY vertex list.

        Each vertex holds the timestamp followed by every component of every
        output at that keyframe.

        Args:
            path: Output file
            timestamps: (k,) keyframe times
            outputs: Arrays of shape (k, components_i)

        Returns:
            Path written
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        timestamps = np.asarray(timestamps, dtype=np.float32).reshape(-1)
        count = len(timestamps)
        columns = [timestamps.reshape(count, 1)]
        columns.extend(np.asarray(o, dtype=np.float32).reshape(count, -1) for o in outputs)
        table = np.hstack(columns)

        header = ["ply", "format ascii 1.0", f"element vertex {count}", "property float timestamp"]
        for output_index, column in enumerate(columns[1:]):
            header.extend(
                f"property float output-{output_index}_component-{c}" for c in range(column.shape[1]))
        header.extend(["element face 0", "property list uchar int vertex_indices", "end_header"])
        rows = [_format_row(row) for row in table]
        path.write_text("\n".join(header + rows) + "\n")
        logger.debug(f"Wrote debug timeline {path}")
        return path
