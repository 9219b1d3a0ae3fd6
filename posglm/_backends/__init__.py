"""
Backend selection and management.

Provides a unified interface for the CPU (NumPy/SciPy) backend and the
optional NVIDIA GPU (PyTorch, FP64) backend.
"""

from typing import Optional

from .base import BackendBase, LinearModelResult
from .cpu_fp64_backend import CPUBackendFP64

# PyTorch is an optional extra
try:
    import torch
    PYTORCH_AVAILABLE = True
except ImportError:
    PYTORCH_AVAILABLE = False


def _cuda_available() -> bool:
    return PYTORCH_AVAILABLE and torch.cuda.is_available()


def get_backend(backend='auto', device: Optional[str] = None) -> BackendBase:
    """
    Get computational backend.

    Parameters
    ----------
    backend : str or BackendBase
        Backend selection:
        - 'auto': CUDA GPU if available, otherwise CPU
        - 'cpu': CPU with NumPy (FP64, R-compatible)
        - 'gpu': CUDA GPU via PyTorch (error if none)
        - 'pytorch': PyTorch FP64 on ``device`` (CUDA if available, else CPU)
        An existing backend instance is returned unchanged.
    device : str, optional
        Torch device for the PyTorch backend

    Returns
    -------
    BackendBase
        Backend instance

    Examples
    --------
    >>> backend = get_backend('cpu')
    >>> backend.name
    'cpu_fp64'
    """
    if isinstance(backend, BackendBase):
        return backend

    if backend == 'auto':
        if _cuda_available():
            from .gpu_fp64_backend import PyTorchBackendFP64
            return PyTorchBackendFP64(device='cuda')
        return CPUBackendFP64()

    elif backend == 'cpu':
        return CPUBackendFP64()

    elif backend == 'gpu':
        if not _cuda_available():
            raise ValueError(
                "No CUDA GPU detected.\n"
                "Options:\n"
                "  - Use backend='cpu'\n"
                "  - Install PyTorch with CUDA: pip install 'posglm[gpu]'"
            )
        from .gpu_fp64_backend import PyTorchBackendFP64
        return PyTorchBackendFP64(device='cuda')

    elif backend == 'pytorch':
        if not PYTORCH_AVAILABLE:
            raise RuntimeError(
                "PyTorch backend unavailable.\n"
                "Install: pip install 'posglm[gpu]'"
            )
        from .gpu_fp64_backend import PyTorchBackendFP64
        return PyTorchBackendFP64(device=device)

    else:
        raise ValueError(
            f"Unknown backend: '{backend}'\n"
            f"Valid options: 'auto', 'cpu', 'gpu', 'pytorch'"
        )


def list_available_backends() -> list:
    """List names of available backends."""
    backends = ['cpu']
    if PYTORCH_AVAILABLE:
        backends.append('pytorch')
    if _cuda_available():
        backends.append('gpu')
    return backends


def print_backend_info():
    """Print detailed backend information (diagnostic)."""
    print("posglm Backend Status")
    print("=" * 50)
    print("\nAvailable Backends:")
    print("  CPU (FP64):          ✓ - sequential QR (R dqrdc2 compatible)")
    print(f"  PyTorch (FP64):      {'✓' if PYTORCH_AVAILABLE else '✗'}")
    print(f"  CUDA GPU:            {'✓' if _cuda_available() else '✗'}")

    if _cuda_available():
        print(f"\nGPU Name: {torch.cuda.get_device_name(0)}")

    print("\nRecommended Backend:")
    print(f"  {get_backend('auto').name}")


__all__ = [
    'get_backend',
    'list_available_backends',
    'print_backend_info',
    'BackendBase',
    'LinearModelResult',
    'PYTORCH_AVAILABLE',
]


if __name__ == "__main__":
    print_backend_info()
