"""World-space position type and precision helpers for navspace.

`Vec3` is the engine's internal position type. Callers exchange positions
with numpy (or any sequence type) through :meth:`Vec3.of`,
:meth:`Vec3.from_array` and :meth:`Vec3.to_array`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Literal, Sequence, Tuple

import numpy as np

Precision = Literal["single", "double"]
"""Real-number width used for every coordinate of a graph."""

UpAxis = Literal["x", "y", "z"]

ZERO_THRESHOLD = 1e-6

_DTYPES = {
    "single": np.float32,
    "double": np.float64,
}


def dtype_for(precision: Precision) -> type:
    """Return the numpy scalar type backing ``precision``."""

    try:
        return _DTYPES[precision]
    except KeyError:
        raise ValueError(f"Unknown precision: {precision!r}") from None


@dataclass(frozen=True, slots=True)
class Vec3:
    """Immutable 3D position or direction."""

    x: float
    y: float
    z: float = 0.0

    @classmethod
    def of(cls, value: Any) -> "Vec3":
        """Coerce tuples, sequences, numpy arrays or ``Vec3`` into a ``Vec3``.

        Two-component inputs get ``z = 0``.
        """

        if isinstance(value, Vec3):
            return value
        if isinstance(value, np.ndarray):
            return cls.from_array(value)
        items = list(value)
        if len(items) == 2:
            return cls(float(items[0]), float(items[1]), 0.0)
        if len(items) == 3:
            return cls(float(items[0]), float(items[1]), float(items[2]))
        raise ValueError(f"Expected 2 or 3 coordinates, got {len(items)}: {value!r}")

    @classmethod
    def from_array(cls, array: np.ndarray) -> "Vec3":
        flat = np.asarray(array, dtype=np.float64).reshape(-1)
        if flat.size not in (2, 3):
            raise ValueError(f"Expected array of 2 or 3 elements, got shape {array.shape}")
        z = float(flat[2]) if flat.size == 3 else 0.0
        return cls(float(flat[0]), float(flat[1]), z)

    def to_array(self, dtype: Any = np.float64) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=dtype)

    def to_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def quantize(self, precision: Precision) -> "Vec3":
        """Round every component through the numpy type of ``precision``."""

        values = np.asarray(self.to_tuple(), dtype=dtype_for(precision)).tolist()
        return Vec3(float(values[0]), float(values[1]), float(values[2]))

    def __add__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, factor: float) -> "Vec3":
        return Vec3(self.x * factor, self.y * factor, self.z * factor)

    __rmul__ = __mul__

    def __truediv__(self, factor: float) -> "Vec3":
        return Vec3(self.x / factor, self.y / factor, self.z / factor)

    def mul(self, other: "Vec3") -> "Vec3":
        """Component-wise product."""

        return Vec3(self.x * other.x, self.y * other.y, self.z * other.z)

    def dot(self, other: "Vec3") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: "Vec3") -> "Vec3":
        return Vec3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def sqr_length(self) -> float:
        return self.dot(self)

    def length(self) -> float:
        return math.sqrt(self.sqr_length())

    def distance(self, other: "Vec3") -> float:
        return (other - self).length()

    def normalize(self) -> "Vec3":
        length = self.length()
        if length <= 0.0:
            return Vec3(0.0, 0.0, 0.0)
        return self / length

    def lerp(self, other: "Vec3", t: float) -> "Vec3":
        return self + (other - self) * t

    def project(self, a: "Vec3", b: "Vec3") -> float:
        """Return the parameter of this point projected on line ``a -> b``."""

        ab = b - a
        denom = ab.sqr_length()
        if denom <= 0.0:
            return 0.0
        return (self - a).dot(ab) / denom

    def same_as(self, other: "Vec3", tolerance: float = ZERO_THRESHOLD) -> bool:
        return (other - self).sqr_length() <= tolerance * tolerance

    def planar(self, up_axis: UpAxis = "z") -> Tuple[float, float]:
        """Return the 2D projection orthogonal to ``up_axis``."""

        if up_axis == "z":
            return (self.x, self.y)
        if up_axis == "y":
            return (self.x, self.z)
        return (self.y, self.z)


def centroid(points: Sequence[Vec3]) -> Vec3:
    count = len(points)
    if count == 0:
        raise ValueError("centroid of an empty point set")
    total = Vec3(0.0, 0.0, 0.0)
    for point in points:
        total = total + point
    return total / count


def triangle_area(a: Vec3, b: Vec3, c: Vec3) -> float:
    return (b - a).cross(c - a).length() * 0.5


def polyline_length(points: Iterable[Vec3]) -> float:
    total = 0.0
    previous = None
    for point in points:
        if previous is not None:
            total += previous.distance(point)
        previous = point
    return total


def dedup_consecutive(points: Iterable[Vec3], tolerance: float = ZERO_THRESHOLD) -> List[Vec3]:
    out: List[Vec3] = []
    for point in points:
        if out and out[-1].same_as(point, tolerance):
            continue
        out.append(point)
    return out


__all__ = [
    "Precision",
    "UpAxis",
    "Vec3",
    "ZERO_THRESHOLD",
    "centroid",
    "dedup_consecutive",
    "dtype_for",
    "polyline_length",
    "triangle_area",
]
