"""
SPH kernel functions for density, pressure-gradient and viscosity terms.

This module implements the three radially symmetric kernels of Müller et al.
(2003) used by interactive SPH fluids: Poly6 for density, Spiky for the
pressure gradient and the viscosity Laplacian. All kernels have compact
support of radius h and vanish for r > h.

References
----------
.. [1] Müller, M., Charypar, D., & Gross, M. (2003), "Particle-based fluid
       simulation for interactive applications", Proc. SCA 2003, 154-159.
"""

import numpy as np
import numpy.typing as npt

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float32]


class KernelSet:
    """
    Poly6 / Spiky / viscosity kernels for a single smoothing length h.

    The kernels are defined as:
        W_poly6(r, h)   = 315 / (64 π h⁹) × (h² − r²)³
        ∇W_poly6(r, h)  = −945 / (32 π h⁹) × (h² − r²)² × r_vec
        W_spiky(r, h)   = 15 / (π h⁶) × (h − r)³
        ∇W_spiky(r, h)  = −45 / (π h⁶) × (h − r)² × r_vec / r
        ∇²W_visc(r, h)  = 45 / (π h⁶) × (h − r)
    for 0 ≤ r ≤ h, and zero otherwise.

    Attributes
    ----------
    h : float
        Smoothing length (kernel support radius).
    h2, h3, h6, h9 : float
        Cached powers of h.
    poly6_coef, poly6_grad_coef, spiky_coef, spiky_grad_coef, visc_lap_coef : float
        Normalisation constants, recomputed whenever h changes.

    Notes
    -----
    A non-positive h is not rejected: the constants become inf/nan, which
    is the caller's responsibility.
    """

    def __init__(self, h: float = 0.5):
        """
        Initialize kernel set.

        Parameters
        ----------
        h : float, optional
            Smoothing length. Default is 0.5.
        """
        self.set_smoothing_length(h)

    def set_smoothing_length(self, h: float) -> None:
        """Set h and recompute every derived constant."""
        h = np.float64(h)
        self.h = float(h)
        self.h2 = float(h * h)
        self.h3 = float(h**3)
        self.h6 = float(h**6)
        self.h9 = float(h**9)

        with np.errstate(divide="ignore", invalid="ignore"):
            self.poly6_coef = float(np.float64(315.0) / (64.0 * np.pi * h**9))
            self.poly6_grad_coef = float(np.float64(-945.0) / (32.0 * np.pi * h**9))
            self.spiky_coef = float(np.float64(15.0) / (np.pi * h**6))
            self.spiky_grad_coef = float(np.float64(-45.0) / (np.pi * h**6))
            self.visc_lap_coef = float(np.float64(45.0) / (np.pi * h**6))

    def poly6(self, r: NDArrayFloat) -> NDArrayFloat:
        """
        Compute density kernel W_poly6(r, h).

        Parameters
        ----------
        r : NDArrayFloat
            Distance(s) between particles (scalar or array).

        Returns
        -------
        W : NDArrayFloat
            Kernel value, zero for r > h.
        """
        r = np.asarray(r, dtype=np.float64)
        diff = np.maximum(self.h2 - r * r, 0.0)
        return np.where(r <= self.h, self.poly6_coef * diff**3, 0.0)

    def poly6_gradient(self, r_vec: NDArrayFloat) -> NDArrayFloat:
        """
        Compute gradient of the density kernel ∇W_poly6.

        Parameters
        ----------
        r_vec : NDArrayFloat, shape (..., 3)
            Separation vector(s) r_i − r_j.

        Returns
        -------
        grad_W : NDArrayFloat, shape (..., 3)
        """
        r_vec = np.asarray(r_vec, dtype=np.float64)
        r2 = np.sum(r_vec * r_vec, axis=-1, keepdims=True)
        diff = np.where(r2 <= self.h2, self.h2 - r2, 0.0)
        return self.poly6_grad_coef * diff**2 * r_vec

    def spiky(self, r: NDArrayFloat) -> NDArrayFloat:
        """Compute pressure kernel W_spiky(r, h), zero for r > h."""
        r = np.asarray(r, dtype=np.float64)
        diff = np.maximum(self.h - r, 0.0)
        return self.spiky_coef * diff**3

    def spiky_gradient(self, r_vec: NDArrayFloat) -> NDArrayFloat:
        """
        Compute gradient of the pressure kernel ∇W_spiky.

        Parameters
        ----------
        r_vec : NDArrayFloat, shape (..., 3)
            Separation vector(s) r_i − r_j.

        Returns
        -------
        grad_W : NDArrayFloat, shape (..., 3)
            Gradient along r_vec; zero at r = 0 where the direction is undefined.
        """
        r_vec = np.asarray(r_vec, dtype=np.float64)
        r = np.linalg.norm(r_vec, axis=-1, keepdims=True)
        diff = np.maximum(self.h - r, 0.0)
        safe_r = np.maximum(r, 1e-12)
        grad = self.spiky_grad_coef * diff**2 * r_vec / safe_r
        return np.where(r > 1e-12, grad, 0.0)

    def viscosity_laplacian(self, r: NDArrayFloat) -> NDArrayFloat:
        """Compute viscosity kernel Laplacian ∇²W_visc(r, h), zero for r > h."""
        r = np.asarray(r, dtype=np.float64)
        return self.visc_lap_coef * np.maximum(self.h - r, 0.0)

    def self_density(self) -> float:
        """Kernel value at zero separation, W_poly6(0, h) = poly6_coef × h⁶."""
        return self.poly6_coef * self.h6

    def __repr__(self) -> str:
        return f"KernelSet(h={self.h:.4g})"
