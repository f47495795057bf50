"""
Incrementally learned 3D Gaussian over object positions.
"""

import xml.etree.ElementTree as ET
from typing import Optional, Tuple

import numpy as np

from ..errors import ModelLoadError
from .mapped_probability_table import format_values, parse_values


# Added to the covariance diagonal so that degenerate sample sets
# (e.g. all samples on a plane) still yield an invertible matrix.
COVARIANCE_REGULARIZATION = 1e-6

MIN_SAMPLES = 2


class GaussianKernel:
    """
    Position distribution of one object type, kept as sufficient statistics.

    Only the sample count, the sum and the sum of outer products are stored,
    so learning is a constant-time update and the kernel persists losslessly.
    """

    def __init__(
        self,
        samples: int = 0,
        total: Optional[np.ndarray] = None,
        outer: Optional[np.ndarray] = None,
    ):
        self.samples = int(samples)
        self.total = np.zeros(3) if total is None else np.asarray(total, dtype=np.float64).reshape(3)
        self.outer = np.zeros((3, 3)) if outer is None else np.asarray(outer, dtype=np.float64).reshape(3, 3)

    @property
    def ready(self) -> bool:
        """Whether enough samples were seen to estimate a covariance."""
        return self.samples >= MIN_SAMPLES

    def add_sample(self, position: np.ndarray) -> None:
        """Add one observed position."""
        position = np.asarray(position, dtype=np.float64).reshape(3)
        self.samples += 1
        self.total += position
        self.outer += np.outer(position, position)

    @property
    def mean(self) -> np.ndarray:
        """Get the sample mean."""
        if self.samples == 0:
            return np.zeros(3)
        return self.total / self.samples

    @property
    def covariance(self) -> np.ndarray:
        """Get the regularized unbiased sample covariance."""
        if not self.ready:
            return np.eye(3)
        mean = self.mean
        scatter = self.outer - self.samples * np.outer(mean, mean)
        covariance = scatter / (self.samples - 1)
        # Symmetrize against accumulated rounding
        covariance = 0.5 * (covariance + covariance.T)
        return covariance + COVARIANCE_REGULARIZATION * np.eye(3)

    def density(self, position: np.ndarray) -> float:
        """Evaluate the multivariate normal density at a position."""
        covariance = self.covariance
        diff = np.asarray(position, dtype=np.float64).reshape(3) - self.mean
        sign, log_det = np.linalg.slogdet(covariance)
        if sign <= 0:
            return 0.0
        mahalanobis = float(diff @ np.linalg.solve(covariance, diff))
        log_density = -0.5 * (mahalanobis + log_det + 3 * np.log(2 * np.pi))
        return float(np.exp(log_density))

    def ellipsoid(self, sigma_multiplicator: float = 1.0) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Get the covariance ellipsoid.

        Returns:
            Tuple of (center, radii, axes) where axes columns are the
            principal directions belonging to the radii
        """
        eigenvalues, eigenvectors = np.linalg.eigh(self.covariance)
        radii = sigma_multiplicator * np.sqrt(np.clip(eigenvalues, 0.0, None))
        return self.mean, radii, eigenvectors

    def copy(self) -> "GaussianKernel":
        """Create an independent copy."""
        return GaussianKernel(self.samples, self.total.copy(), self.outer.copy())

    def save(self, element: ET.Element) -> None:
        """Write the statistics into an XML element."""
        element.set("samples", str(self.samples))
        element.set("sum", format_values(self.total))
        element.set("outer", format_values(self.outer.ravel()))

    @classmethod
    def from_element(cls, element: ET.Element) -> "GaussianKernel":
        """Create a kernel from its XML representation."""
        try:
            samples = int(element.get("samples", "0"))
        except ValueError as e:
            raise ModelLoadError(f"Invalid sample count in <{element.tag}>: {e}") from e
        if samples < 0:
            raise ModelLoadError(f"Negative sample count in <{element.tag}>")
        return cls(
            samples=samples,
            total=np.array(parse_values(element.get("sum", "0 0 0"), 3)),
            outer=np.array(parse_values(element.get("outer", " ".join(["0"] * 9)), 9)),
        )

    def __repr__(self) -> str:
        return f"GaussianKernel(samples={self.samples}, mean={self.mean.tolist()})"


__all__ = ['GaussianKernel', 'COVARIANCE_REGULARIZATION']
