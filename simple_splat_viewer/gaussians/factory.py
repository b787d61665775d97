"""
Conversion of raw PLY vertex attributes into Gaussian splats.

Stored attributes are in their pre-activation form, as written by 3D Gaussian
Splatting training: log scales, opacity logits and the zeroth-order spherical
harmonic coefficients of the color.
"""

from typing import Mapping

import numpy as np
import torch

from .base import Gaussian, GaussianSet

SH_C0 = 0.28209479177387814

POSITION_KEYS = ("x", "y", "z")
ROTATION_KEYS = ("rot_0", "rot_1", "rot_2", "rot_3")  # (w, x, y, z)
SCALE_KEYS = ("scale_0", "scale_1", "scale_2")
COLOR_KEYS = ("f_dc_0", "f_dc_1", "f_dc_2")
OPACITY_KEY = "opacity"


def sh_dc_to_rgb(f_dc: torch.Tensor) -> torch.Tensor:
    """Convert zeroth-order SH coefficients to RGB."""
    return 0.5 + SH_C0 * f_dc


def activate(log_scales: torch.Tensor, opacity_logits: torch.Tensor, dtype: torch.dtype):
    """
    Turn log scales and opacity logits into scales and opacities of ``dtype``.

    Both are evaluated in float64 and clamped into the open ranges the rest of
    the pipeline relies on: scales to at least the smallest normal value of
    ``dtype``, opacities to [tiny, 1 - eps].
    """
    info = torch.finfo(dtype)
    scales = torch.exp(log_scales.to(torch.float64)).to(dtype).clamp_min(info.tiny)
    opacities = torch.sigmoid(opacity_logits.to(torch.float64)).to(dtype).clamp(info.tiny, 1.0 - info.eps)
    return scales, opacities


def _stack(columns: Mapping[str, np.ndarray], keys, dtype: torch.dtype, device: torch.device) -> torch.Tensor:
    return torch.stack(
        [torch.as_tensor(np.asarray(columns[k], dtype=np.float64), dtype=dtype, device=device) for k in keys],
        dim=-1,
    )


def splatify_columns(
    columns: Mapping[str, np.ndarray],
    device: torch.device = torch.device("cpu"),
    dtype: torch.dtype = torch.float32,
) -> GaussianSet:
    """
    Build a GaussianSet from columnar raw vertex attributes.

    Args:
        columns: Property name -> values [N], as produced by the PLY decoder
        device: Torch device for the resulting tensors
        dtype: Floating point type for the resulting tensors

    Returns:
        GaussianSet with activated scales, colors and opacities and
        precomputed covariances
    """
    positions = _stack(columns, POSITION_KEYS, dtype, device)
    rotations = _stack(columns, ROTATION_KEYS, dtype, device)
    log_scales = _stack(columns, SCALE_KEYS, torch.float64, device)
    f_dc = _stack(columns, COLOR_KEYS, dtype, device)
    opacity_logits = torch.as_tensor(np.asarray(columns[OPACITY_KEY], dtype=np.float64), device=device)
    scales, opacities = activate(log_scales, opacity_logits, dtype)

    return GaussianSet(
        positions=positions,
        rotations=rotations,
        scales=scales,
        colors=sh_dc_to_rgb(f_dc),
        opacities=opacities,
        device=device,
    )


def splatify(vertex: Mapping[str, float], dtype: torch.dtype = torch.float64) -> Gaussian:
    """
    Build a single Gaussian from one raw vertex.

    Args:
        vertex: Property name -> value mapping for one vertex
        dtype: Floating point type for the resulting tensors

    Returns:
        The Gaussian splat described by the vertex
    """

    def vec(keys):
        return torch.tensor([float(vertex[k]) for k in keys], dtype=dtype)

    scale, opacity = activate(vec(SCALE_KEYS), torch.tensor(float(vertex[OPACITY_KEY]), dtype=dtype), dtype)
    return Gaussian.create(
        position=vec(POSITION_KEYS),
        rotation=vec(ROTATION_KEYS),
        scale=scale,
        color=sh_dc_to_rgb(vec(COLOR_KEYS)),
        opacity=opacity,
    )


__all__ = ["SH_C0", "activate", "sh_dc_to_rgb", "splatify", "splatify_columns"]
