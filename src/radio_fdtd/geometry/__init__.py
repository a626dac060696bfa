"""Geometry editing for the TM solver."""

from radio_fdtd.geometry.editor import PEC, VACUUM, GeometryEditor, MaterialProperty
from radio_fdtd.geometry.primitives import (
    MIN_RADIUS,
    Circle,
    Rectangle,
    Shape,
    column_volume,
    falloff,
    footprint_radius,
)

__all__ = [
    "GeometryEditor",
    "MaterialProperty",
    "PEC",
    "VACUUM",
    "MIN_RADIUS",
    "Shape",
    "Rectangle",
    "Circle",
    "falloff",
    "column_volume",
    "footprint_radius",
]
