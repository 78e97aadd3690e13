"""
Accessor data extraction.

Turns a glTF accessor into a flat, tightly packed numpy array of
``count * components`` values, resolving strided bufferViews, accessor byte
offsets and sparse substitution.
"""

from typing import TYPE_CHECKING

import numpy as np

from ..attribute_types import AttributeTypeUtils
from ..common import PackedArray
from ..constants import GltfConstants
from ..errors import StructuralError

if TYPE_CHECKING:
    from ..asset import Accessor, Asset


class AccessorUtils:
    """Utility class for reading accessor data."""

    @staticmethod
    def components_for_type(accessor_type: str) -> int:
        """
        Get the number of components per element of an accessor type.

        Args:
            accessor_type: SCALAR, VEC2, VEC3, VEC4, MAT2, MAT3 or MAT4

        Returns:
            Number of components

        Raises:
            StructuralError: If the type is unknown
        """
        try:
            return GltfConstants.TYPE_COMPONENT_COUNT[accessor_type]
        except KeyError:
            raise StructuralError(f"Unknown accessor type '{accessor_type}'") from None

    @staticmethod
    def read_packed(asset: "Asset", accessor: "Accessor") -> PackedArray:
        """
        Read accessor data as a flat array.

        Args:
            asset: Asset owning the accessor
            accessor: Accessor to read

        Returns:
            Flat array of ``count * components`` values typed after componentType

        Raises:
            StructuralError: If a referenced view is missing or too short
            UnsupportedAttributeTypeError: If the componentType is unknown
        """
        dtype = AttributeTypeUtils.dtype_for_component_type(accessor.component_type)
        components = AccessorUtils.components_for_type(accessor.type)

        if accessor.buffer_view is None:
            values = np.zeros((accessor.count, components), dtype=dtype)
        else:
            values = AccessorUtils._read_window(
                asset, accessor.buffer_view, accessor.byte_offset or 0,
                accessor.count, components, dtype)

        if accessor.sparse is not None:
            AccessorUtils._apply_sparse(asset, accessor, values, dtype)

        return values.reshape(-1)

    @staticmethod
    def read_elements(asset: "Asset", accessor: "Accessor") -> np.ndarray:
        """Read accessor data shaped (count, components)."""
        components = AccessorUtils.components_for_type(accessor.type)
        return AccessorUtils.read_packed(asset, accessor).reshape(accessor.count, components)

    @staticmethod
    def _read_window(asset: "Asset", buffer_view_id: int, byte_offset: int,
                     count: int, components: int, dtype: np.dtype) -> np.ndarray:
        view = asset.get_buffer_view(buffer_view_id)
        data = asset.buffer_view_data(buffer_view_id)
        element_size = dtype.itemsize * components
        stride = view.byte_stride or element_size
        if count == 0:
            return np.zeros((0, components), dtype=dtype)

        end = byte_offset + stride * (count - 1) + element_size
        if end > len(data):
            raise StructuralError(
                f"Accessor window ends at byte {end}, past the "
                f"{len(data)} bytes of bufferView {buffer_view_id}")

        # Strided view into the raw bytes, then copied to a packed array
        strided = np.ndarray(
            shape=(count, components),
            dtype=dtype,
            buffer=data,
            offset=byte_offset,
            strides=(stride, dtype.itemsize),
        )
        return strided.copy()

    @staticmethod
    def _apply_sparse(asset: "Asset", accessor: "Accessor", values: np.ndarray, dtype: np.dtype) -> None:
        sparse = accessor.sparse
        components = values.shape[1]
        index_dtype = AttributeTypeUtils.dtype_for_component_type(sparse.indices.component_type)
        indices = AccessorUtils._read_window(
            asset, sparse.indices.buffer_view, sparse.indices.byte_offset,
            sparse.count, 1, index_dtype).reshape(-1)
        substitutes = AccessorUtils._read_window(
            asset, sparse.values.buffer_view, sparse.values.byte_offset,
            sparse.count, components, dtype)
        if indices.size and int(indices.max()) >= accessor.count:
            raise StructuralError(
                f"Sparse index {int(indices.max())} is out of range for {accessor.count} elements")
        values[indices.astype(np.int64)] = substitutes
