"""Array backends that execute the per-cell update kernels.

The kernels are written as whole-grid slice arithmetic, which NumPy arrays and
PyTorch tensors both understand. A backend supplies the few operations that
differ between the two libraries: allocation, host transfer, elementwise
maximum and masked selection.

Backends:
    - "python": NumPy on the host (always available)
    - "gpu": PyTorch on MPS (Apple Silicon) or CUDA
    - "auto": "gpu" when an accelerator is present, otherwise "python"

Example:
    >>> from radio_fdtd.core.backend import get_backend
    >>> backend = get_backend("python")
    >>> buf = backend.zeros((4, 256, 256))
"""

from __future__ import annotations

import warnings
from typing import Any, Literal

import numpy as np
from numpy.typing import NDArray

# Check for PyTorch and accelerator availability
_HAS_TORCH = False
_HAS_MPS = False
_HAS_CUDA = False
_torch = None

try:
    import torch
    _torch = torch
    _HAS_TORCH = True
    _HAS_MPS = torch.backends.mps.is_available() and torch.backends.mps.is_built()
    _HAS_CUDA = torch.cuda.is_available()
except ImportError:
    pass


BackendName = Literal["auto", "gpu", "python"]


def has_gpu_support() -> bool:
    """Check if a GPU (MPS or CUDA) backend is available.

    Returns:
        True if PyTorch is installed and an accelerator device is usable.
    """
    return _HAS_MPS or _HAS_CUDA


def get_gpu_info() -> dict:
    """Get information about GPU support.

    Returns:
        Dict with keys: available, backend, pytorch_version
    """
    if not _HAS_TORCH:
        return {
            "available": False,
            "backend": None,
            "pytorch_version": None,
        }
    if _HAS_CUDA:
        device = "cuda"
    elif _HAS_MPS:
        device = "mps"
    else:
        device = None
    return {
        "available": has_gpu_support(),
        "backend": device,
        "pytorch_version": _torch.__version__,
    }


class NumpyBackend:
    """Host backend using float32 NumPy arrays."""

    name = "python"
    dtype = np.float32

    def zeros(self, shape: tuple[int, ...]) -> NDArray[np.float32]:
        return np.zeros(shape, dtype=self.dtype)

    def asarray(self, values: Any) -> NDArray:
        arr = np.asarray(values)
        if arr.dtype != np.bool_:
            arr = arr.astype(self.dtype, copy=False)
        return arr

    def to_numpy(self, arr: Any) -> NDArray[np.float32]:
        return np.array(arr, dtype=self.dtype, copy=True)

    def copy(self, arr):
        return np.array(arr, dtype=self.dtype, copy=True)

    def maximum(self, a, b):
        return np.maximum(a, b)

    def where(self, mask, value, arr):
        return np.where(mask, np.float32(value) if np.isscalar(value) else value, arr)

    def readonly(self, arr: NDArray) -> NDArray:
        view = arr.view()
        view.flags.writeable = False
        return view


class TorchBackend:
    """Accelerator backend using float32 PyTorch tensors.

    Tensors cannot be flagged read-only, so ReadHandles on this backend rely
    on the single-writer discipline of the buffer store.
    """

    name = "gpu"

    def __init__(self, device: str | None = None):
        if not _HAS_TORCH:
            raise ImportError(
                "PyTorch is required for GPU backend. Install with: pip install torch"
            )
        if device is None:
            if _HAS_CUDA:
                device = "cuda"
            elif _HAS_MPS:
                device = "mps"
            else:
                device = "cpu"
                warnings.warn(
                    "No GPU device available, GPU backend running on CPU. "
                    "This provides no acceleration benefit.",
                    UserWarning,
                    stacklevel=3,
                )
        self.device = device
        self.dtype = _torch.float32

    def zeros(self, shape: tuple[int, ...]):
        return _torch.zeros(*shape, device=self.device, dtype=self.dtype)

    def asarray(self, values: Any):
        arr = np.asarray(values)
        if arr.dtype == np.bool_:
            return _torch.as_tensor(arr, device=self.device)
        return _torch.as_tensor(arr.astype(np.float32), device=self.device)

    def to_numpy(self, arr: Any) -> NDArray[np.float32]:
        if isinstance(arr, _torch.Tensor):
            return arr.detach().cpu().numpy().astype(np.float32, copy=True)
        return np.array(arr, dtype=np.float32, copy=True)

    def copy(self, arr):
        return arr.clone()

    def maximum(self, a, b):
        return _torch.maximum(a, b)

    def where(self, mask, value, arr):
        if not isinstance(value, _torch.Tensor):
            value = _torch.as_tensor(value, dtype=self.dtype, device=self.device)
        return _torch.where(mask, value, arr)

    def readonly(self, arr):
        return arr


def get_backend(name: BackendName = "auto"):
    """Resolve a backend name to a backend instance.

    Args:
        name: "auto", "gpu" or "python"

    Returns:
        NumpyBackend or TorchBackend

    Raises:
        RuntimeError: If "gpu" is requested but no accelerator is available
        ValueError: If the name is unknown
    """
    if name == "python":
        return NumpyBackend()
    if name == "gpu":
        if not has_gpu_support():
            raise RuntimeError(
                "GPU backend not available. "
                "Requires PyTorch with MPS or CUDA support. "
                "Install PyTorch with: pip install torch"
            )
        return TorchBackend()
    if name == "auto":
        if has_gpu_support():
            return TorchBackend()
        return NumpyBackend()
    raise ValueError(f"Unknown backend '{name}'. Valid backends: auto, gpu, python")
