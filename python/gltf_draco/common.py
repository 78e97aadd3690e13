# Common type definitions
from pathlib import Path
from typing import Union

import numpy as np


PathLike = Union[str, Path]

# Flat, tightly packed accessor payload (count * components values)
PackedArray = np.ndarray
