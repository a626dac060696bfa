"""
Absorbing boundary conditions for the TM solver.

Both conditions run inside the E pass, after the interior update, and
overwrite the outermost row or column of Ez on each enabled edge. Every
edge is evaluated strictly between its corners; the four corner cells keep
the interior update.

Notation for one edge: E0 is the boundary cell, E1 its inner neighbour.
Superscripts are time levels, with n+1 the value being produced, and
E0* the interior-formula value of the boundary cell at n+1.

First order (Mur):
    E0^{n+1} = E1^n + mur1 · (E1^{n+1} - E0*)

Second order (Mur):
    E0^{n+1} = -E1^{n-1} - mur2a · (E1^{n+1} + E0^{n-1})
               + mur2b · (E0^n + E1^n)
               + mur2c · (d2 E0^n + d2 E1^n)

where d2 is the second difference along the edge. The second-order
condition reads E^{n-1} from the history buffer.

Corrected cells are multiplied by the material flag afterwards so a PEC
region touching the domain edge stays at zero field.

Example:
    >>> boundary = make_boundary(order=2)
    >>> boundary.initialize(shape=(256, 256), coeffs=coeffs)
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from radio_fdtd.core.buffers import EZ
from radio_fdtd.core.config import UpdateCoefficients


class Edge(Enum):
    """Domain edges a boundary condition can be applied to."""

    LEFT = "left"  # x = 0
    RIGHT = "right"  # x = nx - 1
    BOTTOM = "bottom"  # y = 0
    TOP = "top"  # y = ny - 1


ALL_EDGES = (Edge.LEFT, Edge.RIGHT, Edge.BOTTOM, Edge.TOP)


def _edge_indices(edge: Edge) -> dict[str, tuple]:
    """Index tuples into a (nx, ny) array for one edge.

    Keys:
        b: boundary cells between the corners
        i: inner neighbours of b
        b_plus, b_minus: tangential neighbours of b
        i_plus, i_minus: tangential neighbours of i
    """
    inner = slice(1, -1)
    plus = slice(2, None)
    minus = slice(None, -2)

    if edge in (Edge.LEFT, Edge.RIGHT):
        b, i = (0, 1) if edge is Edge.LEFT else (-1, -2)
        return {
            "b": (b, inner),
            "i": (i, inner),
            "b_plus": (b, plus),
            "b_minus": (b, minus),
            "i_plus": (i, plus),
            "i_minus": (i, minus),
        }

    b, i = (0, 1) if edge is Edge.BOTTOM else (-1, -2)
    return {
        "b": (inner, b),
        "i": (inner, i),
        "b_plus": (plus, b),
        "b_minus": (minus, b),
        "i_plus": (plus, i),
        "i_minus": (minus, i),
    }


def _resolve_edges(edges) -> tuple[Edge, ...]:
    if edges == "all":
        return ALL_EDGES
    resolved = tuple(Edge(e) if not isinstance(e, Edge) else e for e in edges)
    if not resolved:
        raise ValueError("At least one edge is required")
    return resolved


class ABCFirstOrder:
    """First-order Absorbing Boundary Condition (Mur).

    A one-way wave equation applied at each edge. Cheap and stateless, but
    it reflects noticeably at oblique incidence and degrades next to
    conductive obstacles that touch the edge.

    Args:
        edges: Which edges to apply the ABC to ("all" or an iterable of Edge)
    """

    order = 1
    requires_history = False

    def __init__(self, edges: Literal["all"] | tuple[Edge, ...] = "all"):
        self.edges = _resolve_edges(edges)
        self._coeffs: UpdateCoefficients | None = None
        self._shape: tuple[int, int] | None = None

    def initialize(self, shape: tuple[int, int], coeffs: UpdateCoefficients) -> None:
        """Bind grid shape and coefficients."""
        self._shape = shape
        self._coeffs = coeffs

    @property
    def is_initialized(self) -> bool:
        return self._coeffs is not None

    def apply(self, ez_new, fields, previous=None):
        """Overwrite the edges of a freshly computed Ez array.

        Args:
            ez_new: Interior-updated Ez (nx, ny); modified in place
            fields: Read view of the field buffer at time n
            previous: Unused by the first-order condition

        Returns:
            ez_new with corrected edges
        """
        if self._coeffs is None:
            raise RuntimeError("Boundary not initialized. Call initialize() first.")

        ez_old = fields[EZ]
        mur1 = self._coeffs.mur1
        for edge in self.edges:
            idx = _edge_indices(edge)
            # the boundary cell's own interior update stands in for E0
            ez_new[idx["b"]] = ez_old[idx["i"]] + mur1 * (ez_new[idx["i"]] - ez_new[idx["b"]])
        return ez_new

    def reset(self) -> None:
        """Nothing to reset; the condition keeps no state of its own."""
        pass


class ABCSecondOrder:
    """Second-order Absorbing Boundary Condition (Mur).

    Adds the tangential second difference of the field along the edge to
    the one-way wave equation, which absorbs obliquely incident waves far
    better than the first-order form. Needs Ez from two time levels back,
    supplied by the history buffer.

    Args:
        edges: Which edges to apply the ABC to ("all" or an iterable of Edge)
    """

    order = 2
    requires_history = True

    def __init__(self, edges: Literal["all"] | tuple[Edge, ...] = "all"):
        self.edges = _resolve_edges(edges)
        self._coeffs: UpdateCoefficients | None = None
        self._shape: tuple[int, int] | None = None

    def initialize(self, shape: tuple[int, int], coeffs: UpdateCoefficients) -> None:
        """Bind grid shape and coefficients."""
        nx, ny = shape
        if nx < 3 or ny < 3:
            raise ValueError(f"Second-order ABC needs at least 3x3 cells, got {shape}")
        self._shape = shape
        self._coeffs = coeffs

    @property
    def is_initialized(self) -> bool:
        return self._coeffs is not None

    def apply(self, ez_new, fields, previous=None):
        """Overwrite the edges of a freshly computed Ez array.

        Args:
            ez_new: Interior-updated Ez (nx, ny); modified in place
            fields: Read view of the field buffer at time n
            previous: Read view of the history buffer at time n-1

        Returns:
            ez_new with corrected edges
        """
        if self._coeffs is None:
            raise RuntimeError("Boundary not initialized. Call initialize() first.")
        if previous is None:
            raise ValueError("Second-order ABC requires the previous history buffer")

        ez = fields[EZ]
        ez_prev = previous[EZ]
        c = self._coeffs

        for edge in self.edges:
            idx = _edge_indices(edge)
            d2_b = ez[idx["b_plus"]] - 2.0 * ez[idx["b"]] + ez[idx["b_minus"]]
            d2_i = ez[idx["i_plus"]] - 2.0 * ez[idx["i"]] + ez[idx["i_minus"]]
            ez_new[idx["b"]] = (
                -ez_prev[idx["i"]]
                - c.mur2a * (ez_new[idx["i"]] + ez_prev[idx["b"]])
                + c.mur2b * (ez[idx["b"]] + ez[idx["i"]])
                + c.mur2c * (d2_b + d2_i)
            )
        return ez_new

    def reset(self) -> None:
        """Nothing to reset; time history lives in the history buffer."""
        pass


def make_boundary(order: int = 2, edges: Literal["all"] | tuple[Edge, ...] = "all"):
    """Create the Mur boundary of the given order.

    Raises:
        ValueError: If order is not 1 or 2
    """
    if order == 1:
        return ABCFirstOrder(edges=edges)
    if order == 2:
        return ABCSecondOrder(edges=edges)
    raise ValueError(f"boundary_order must be 1 or 2, got {order}")
