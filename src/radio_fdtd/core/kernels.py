"""
Pure per-cell update kernels for the 2D TM leapfrog scheme.

Each kernel takes read-only views of the current buffers plus the immutable
coefficients and returns freshly computed arrays. Kernels never see the
destination buffer, so a pass can never read a value it has already
overwritten.

The staggered update on the [channel, x, y] field layout:

    Hx[x,y] -= chxe · (Ez[x,y+1] - Ez[x,y])
    Hy[x,y] -= chye · (Ez[x,y]   - Ez[x+1,y])

    curlH    = (Hy[x,y] - Hy[x-1,y]) - (Hx[x,y] - Hx[x,y-1])
    Ez[x,y]  = (Ez[x,y] + ceh · curlH / dielectric) · material · loss

H components in the last row/column have no forward neighbour and pass
through unchanged. Backward differences at index 0 are zero, matching a
clamped neighbour read.
"""

from __future__ import annotations

import math

from radio_fdtd.core.buffers import DIELECTRIC, EZ, HX, HY, MATERIAL, SOURCE_AMPLITUDE
from radio_fdtd.core.config import UpdateCoefficients


def h_update(fields, coeffs: UpdateCoefficients, backend):
    """Advance Hx and Hy by one half step.

    Args:
        fields: Read view of the current field buffer (4, nx, ny)
        coeffs: Update coefficients
        backend: Array backend

    Returns:
        New field buffer contents; Ez and material pass through
    """
    out = backend.copy(fields)
    ez = fields[EZ]
    out[HX, :, :-1] -= coeffs.chxe * (ez[:, 1:] - ez[:, :-1])
    out[HY, :-1, :] -= coeffs.chye * (ez[:-1, :] - ez[1:, :])
    return out


def curl_h(fields, backend):
    """Discrete curl of H at every Ez node with clamped backward neighbours."""
    hx = fields[HX]
    hy = fields[HY]
    curl = backend.zeros(tuple(hx.shape))
    curl[1:, :] += hy[1:, :] - hy[:-1, :]
    curl[:, 1:] -= hx[:, 1:] - hx[:, :-1]
    return curl


def e_update(fields, accessory, coeffs: UpdateCoefficients, backend):
    """Advance Ez by one half step in the interior.

    Edge cells receive the same interior formula here; the boundary
    condition overwrites them afterwards.

    Args:
        fields: Read view of the current field buffer (4, nx, ny)
        accessory: Read view of the accessory buffer (3, nx, ny)
        coeffs: Update coefficients
        backend: Array backend

    Returns:
        New Ez array of shape (nx, ny)
    """
    curl = curl_h(fields, backend)
    ez = fields[EZ] + coeffs.ceh * curl / accessory[DIELECTRIC]
    return ez * fields[MATERIAL] * coeffs.loss_factor


def inject_source(fields, accessory, current_phase: float, backend):
    """Add amplitude·sin(phase) of the source map to Ez.

    Returns:
        New field buffer contents with every other channel passed through
    """
    out = backend.copy(fields)
    out[EZ] += accessory[SOURCE_AMPLITUDE] * math.sin(current_phase)
    return out
