"""Boundary conditions for the TM solver."""

from radio_fdtd.boundaries._boundaries import (
    ALL_EDGES,
    ABCFirstOrder,
    ABCSecondOrder,
    Edge,
    make_boundary,
)

__all__ = [
    "ABCFirstOrder",
    "ABCSecondOrder",
    "ALL_EDGES",
    "Edge",
    "make_boundary",
]
