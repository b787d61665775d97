"""
Gaussian splat records for 3D Gaussian Splatting.

This module provides the single-splat record (Gaussian) and the batched
splat collection (GaussianSet) used by the per-frame projection and
ordering pipeline. Both are immutable once built: the screen-space basis is
recomputed every frame by the projector and is never stored here.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import torch

from ..utils.transforms import build_covariance, normalize_quaternion


@dataclass(frozen=True, eq=False)
class Gaussian:
    """
    A single render-ready Gaussian splat.

    Attributes:
        position: World-space center [3]
        rotation: Unit quaternion, real part first [4]
        scale: Per-axis standard deviation, always positive [3]
        color: RGB color [3]
        opacity: Opacity in (0, 1), scalar tensor
        covariance3d: 3D covariance matrix [3, 3]
    """

    position: torch.Tensor
    rotation: torch.Tensor
    scale: torch.Tensor
    color: torch.Tensor
    opacity: torch.Tensor
    covariance3d: torch.Tensor

    @classmethod
    def create(
        cls,
        position: torch.Tensor,
        rotation: torch.Tensor,
        scale: torch.Tensor,
        color: torch.Tensor,
        opacity: torch.Tensor,
    ) -> "Gaussian":
        """Build a Gaussian, normalizing the rotation and deriving its covariance."""
        rotation = normalize_quaternion(rotation)
        return cls(
            position=position,
            rotation=rotation,
            scale=scale,
            color=color,
            opacity=torch.as_tensor(opacity, dtype=position.dtype, device=position.device),
            covariance3d=build_covariance(rotation, scale),
        )


class GaussianSet:
    """
    An ordered collection of Gaussian splats stored as batched tensors.

    Index i of every tensor refers to the same splat; draw orders produced by
    the visibility orderer are permutations of these indices.

    Attributes:
        positions: Gaussian centers [N, 3]
        rotations: Unit quaternions (real part first) [N, 4]
        scales: Scales (exp activated) [N, 3]
        colors: RGB colors [N, 3]
        opacities: Opacities (sigmoid activated) [N]
        covariances: 3D covariance matrices [N, 3, 3]
        device: Torch device
    """

    def __init__(
        self,
        positions: torch.Tensor,
        rotations: torch.Tensor,
        scales: torch.Tensor,
        colors: torch.Tensor,
        opacities: torch.Tensor,
        device: Optional[torch.device] = None,
        covariances: Optional[torch.Tensor] = None,
    ):
        """
        Initialize a GaussianSet.

        Args:
            positions: Gaussian centers [N, 3]
            rotations: Gaussian rotations (quaternions, real part first) [N, 4]
            scales: Gaussian scales, already exp activated [N, 3]
            colors: RGB colors [N, 3]
            opacities: Opacities in (0, 1) [N]
            device: Torch device (default: device of positions)
            covariances: Precomputed covariances [N, 3, 3]; derived if omitted

        Raises:
            ValueError: If tensor shapes are inconsistent
        """
        device = positions.device if device is None else device
        n = positions.shape[0]
        expected = {
            "positions": (positions, (n, 3)),
            "rotations": (rotations, (n, 4)),
            "scales": (scales, (n, 3)),
            "colors": (colors, (n, 3)),
            "opacities": (opacities, (n,)),
        }
        for name, (tensor, shape) in expected.items():
            if tuple(tensor.shape) != shape:
                raise ValueError(f"Expected {name} of shape {shape}, got {tuple(tensor.shape)}")

        self.device = device
        self.positions = positions.to(device)
        self.rotations = normalize_quaternion(rotations.to(device))
        self.scales = scales.to(device)
        self.colors = colors.to(device)
        self.opacities = opacities.to(device)
        if covariances is None:
            covariances = build_covariance(self.rotations, self.scales)
        self.covariances = covariances.to(device)

    @classmethod
    def from_gaussians(cls, gaussians: Sequence[Gaussian], device: Optional[torch.device] = None) -> "GaussianSet":
        """Stack single Gaussian records into a set."""
        if not gaussians:
            raise ValueError("GaussianSet.from_gaussians requires at least one Gaussian")
        return cls(
            positions=torch.stack([g.position for g in gaussians]),
            rotations=torch.stack([g.rotation for g in gaussians]),
            scales=torch.stack([g.scale for g in gaussians]),
            colors=torch.stack([g.color for g in gaussians]),
            opacities=torch.stack([g.opacity for g in gaussians]),
            covariances=torch.stack([g.covariance3d for g in gaussians]),
            device=device,
        )

    def __len__(self) -> int:
        return self.positions.shape[0]

    def __getitem__(self, index: int) -> Gaussian:
        return Gaussian(
            position=self.positions[index],
            rotation=self.rotations[index],
            scale=self.scales[index],
            color=self.colors[index],
            opacity=self.opacities[index],
            covariance3d=self.covariances[index],
        )

    def to(self, device: torch.device) -> "GaussianSet":
        return GaussianSet(
            self.positions, self.rotations, self.scales, self.colors, self.opacities,
            device=device, covariances=self.covariances,
        )

    def colors_with_opacity(self) -> torch.Tensor:
        """Color and opacity packed per splat [N, 4] (r, g, b, opacity)."""
        return torch.cat([self.colors, self.opacities.unsqueeze(-1)], dim=-1)

    def bounds(self) -> List[List[float]]:
        """Axis-aligned bounds of the splat centers as [min xyz, max xyz]."""
        if len(self) == 0:
            return [[0.0] * 3, [0.0] * 3]
        return [self.positions.min(dim=0).values.tolist(), self.positions.max(dim=0).values.tolist()]

    def print_summary(self):
        """Print a summary of the loaded Gaussians."""
        lower, upper = self.bounds()
        print("Loaded GaussianSet:")
        print(f"  Splats: {len(self):,}")
        print(f"  Bounds: [{lower[0]:.2f}, {lower[1]:.2f}, {lower[2]:.2f}] to [{upper[0]:.2f}, {upper[1]:.2f}, {upper[2]:.2f}]")
        if len(self) > 0:
            print(f"  Mean opacity: {self.opacities.mean().item():.3f}")
            print(f"  Median scale: {self.scales.median().item():.4f}")
