"""
Mapping between glTF accessor component types and codec attribute types.

Each supported numeric type has one ``AttributeType`` entry holding the numpy
dtype, the codec data type and the names of the typed codec operations. Any
type without an entry is rejected with ``UnsupportedAttributeTypeError``.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict

import numpy as np

from .codec import AttributeClass, DecodedAttribute, DecodedGeometry, DracoDataType, MeshEncoder
from .errors import UnsupportedAttributeTypeError


class ComponentType(IntEnum):
    """glTF accessor componentType values."""

    BYTE = 5120
    UNSIGNED_BYTE = 5121
    SHORT = 5122
    UNSIGNED_SHORT = 5123
    INT = 5124
    UNSIGNED_INT = 5125
    FLOAT = 5126


@dataclass(frozen=True)
class AttributeType:
    """One row of the dispatch table."""

    component_type: ComponentType
    data_type: DracoDataType
    dtype: np.dtype
    add_method: str
    get_method: str

    def add(self, encoder: MeshEncoder, attribute_class: AttributeClass,
            num_points: int, num_components: int, data: np.ndarray) -> int:
        """Add an attribute through the typed encoder operation."""
        add = getattr(encoder, self.add_method)
        return add(attribute_class, num_points, num_components, np.asarray(data, dtype=self.dtype))

    def get(self, geometry: DecodedGeometry, attribute: DecodedAttribute) -> np.ndarray:
        """Read all point values of an attribute through the typed decoder operation."""
        return getattr(geometry, self.get_method)(attribute)


def _entry(component_type: ComponentType, data_type: DracoDataType, dtype, name: str) -> AttributeType:
    return AttributeType(
        component_type=component_type,
        data_type=data_type,
        dtype=np.dtype(dtype),
        add_method=f"add_{name}_attribute",
        get_method=f"get_attribute_{name}_for_all_points",
    )


ATTRIBUTE_TYPES = (
    _entry(ComponentType.BYTE, DracoDataType.INT8, np.int8, "int8"),
    _entry(ComponentType.UNSIGNED_BYTE, DracoDataType.UINT8, np.uint8, "uint8"),
    _entry(ComponentType.SHORT, DracoDataType.INT16, np.int16, "int16"),
    _entry(ComponentType.UNSIGNED_SHORT, DracoDataType.UINT16, np.uint16, "uint16"),
    _entry(ComponentType.INT, DracoDataType.INT32, np.int32, "int32"),
    _entry(ComponentType.UNSIGNED_INT, DracoDataType.UINT32, np.uint32, "uint32"),
    _entry(ComponentType.FLOAT, DracoDataType.FLOAT32, np.float32, "float"),
)

_BY_COMPONENT_TYPE: Dict[int, AttributeType] = {t.component_type: t for t in ATTRIBUTE_TYPES}
_BY_DATA_TYPE: Dict[int, AttributeType] = {t.data_type: t for t in ATTRIBUTE_TYPES}


class AttributeTypeUtils:
    """Lookups into the attribute type table."""

    @staticmethod
    def for_component_type(component_type: int) -> AttributeType:
        """
        Get the entry for a glTF componentType.

        Raises:
            UnsupportedAttributeTypeError: If the component type has no entry
        """
        try:
            return _BY_COMPONENT_TYPE[int(component_type)]
        except KeyError:
            raise UnsupportedAttributeTypeError(
                f"unsupported attribute type: componentType {component_type}") from None

    @staticmethod
    def for_data_type(data_type: int) -> AttributeType:
        """
        Get the entry for a codec data type.

        Raises:
            UnsupportedAttributeTypeError: If the data type has no entry
        """
        try:
            return _BY_DATA_TYPE[int(data_type)]
        except KeyError:
            raise UnsupportedAttributeTypeError(
                f"unsupported attribute type: codec data type {data_type}") from None

    @staticmethod
    def for_dtype(dtype) -> AttributeType:
        """
        Get the entry for a numpy dtype.

        Raises:
            UnsupportedAttributeTypeError: If the dtype has no entry
        """
        dtype = np.dtype(dtype)
        for attribute_type in ATTRIBUTE_TYPES:
            if attribute_type.dtype == dtype:
                return attribute_type
        raise UnsupportedAttributeTypeError(f"unsupported attribute type: dtype {dtype}")

    @staticmethod
    def dtype_for_component_type(component_type: int) -> np.dtype:
        return AttributeTypeUtils.for_component_type(component_type).dtype

    @staticmethod
    def add_attribute(encoder: MeshEncoder, component_type: int, attribute_class: AttributeClass,
                      num_points: int, num_components: int, data: np.ndarray) -> int:
        """Add accessor data to an encoder using the operation matching its component type."""
        attribute_type = AttributeTypeUtils.for_component_type(component_type)
        return attribute_type.add(encoder, attribute_class, num_points, num_components, data)

    @staticmethod
    def get_attribute(geometry: DecodedGeometry, attribute: DecodedAttribute) -> np.ndarray:
        """Read decoded attribute data typed after the codec's declared data type."""
        attribute_type = AttributeTypeUtils.for_data_type(attribute.data_type)
        return attribute_type.get(geometry, attribute)
