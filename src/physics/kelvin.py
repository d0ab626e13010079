"""
Kelvin Vector Algebra
=====================

Compact storage of symmetric second-order tensors.

A symmetric tensor A is stored as a Kelvin vector

    2D (plane strain):  [A_xx, A_yy, A_zz, √2·A_xy]
    3D:                 [A_xx, A_yy, A_zz, √2·A_xy, √2·A_yz, √2·A_xz]

With this scaling the Euclidean dot product of two Kelvin vectors equals the
double contraction A:B of the tensors, so norms and energies are preserved
and fourth-order tensors become ordinary symmetric matrices.
"""

import numpy as np

SQRT2 = np.sqrt(2.0)

# Kelvin index -> (i, j) tensor index
_KELVIN_TO_TENSOR = {
    4: [(0, 0), (1, 1), (2, 2), (0, 1)],
    6: [(0, 0), (1, 1), (2, 2), (0, 1), (1, 2), (0, 2)],
}

# Output ordering xx, yy, zz, xy[, xz, yz] as Kelvin indices
_OUTPUT_ORDER = {
    4: [0, 1, 2, 3],
    6: [0, 1, 2, 3, 5, 4],
}

COMPONENT_NAMES = {
    2: ("xx", "yy", "zz", "xy"),
    3: ("xx", "yy", "zz", "xy", "xz", "yz"),
}


def kelvin_size(dim: int) -> int:
    """Number of Kelvin vector components for a displacement dimension."""
    if dim == 2:
        return 4
    if dim == 3:
        return 6
    raise ValueError(f"Unsupported dimension: {dim}")


def identity2(dim: int) -> np.ndarray:
    """Second-order identity tensor as Kelvin vector."""
    ident = np.zeros(kelvin_size(dim))
    ident[:3] = 1.0
    return ident


def spherical_projection(dim: int) -> np.ndarray:
    """P_sph = (1/3) I ⊗ I."""
    ident = identity2(dim)
    return np.outer(ident, ident) / 3.0


def deviatoric_projection(dim: int) -> np.ndarray:
    """P_dev = I_4 - P_sph."""
    return np.eye(kelvin_size(dim)) - spherical_projection(dim)


def trace(v: np.ndarray) -> float:
    """Trace of the tensor stored in v."""
    return float(v[0] + v[1] + v[2])


def deviatoric(v: np.ndarray) -> np.ndarray:
    """Deviatoric part of a Kelvin vector."""
    v = np.asarray(v, dtype=np.float64)
    dev = v.copy()
    dev[:3] -= trace(v) / 3.0
    return dev


def J2(v: np.ndarray) -> float:
    """Second invariant of the deviator: J2 = ½ s:s."""
    s = deviatoric(v)
    return 0.5 * float(s @ s)


def J3(v: np.ndarray) -> float:
    """Third invariant of the deviator: J3 = det(s)."""
    return float(np.linalg.det(kelvin_to_tensor(deviatoric(v))))


def equivalent_stress(v: np.ndarray) -> float:
    """von Mises equivalent q = √(3 J2)."""
    return float(np.sqrt(3.0 * J2(v)))


def kelvin_to_tensor(v: np.ndarray) -> np.ndarray:
    """Kelvin vector -> symmetric 3×3 tensor."""
    v = np.asarray(v, dtype=np.float64)
    T = np.zeros((3, 3))
    for k, (i, j) in enumerate(_KELVIN_TO_TENSOR[len(v)]):
        value = v[k] if i == j else v[k] / SQRT2
        T[i, j] = value
        T[j, i] = value
    return T


def tensor_to_kelvin(T: np.ndarray, dim: int) -> np.ndarray:
    """Symmetric 3×3 tensor -> Kelvin vector."""
    T = np.asarray(T, dtype=np.float64)
    n = kelvin_size(dim)
    v = np.zeros(n)
    for k, (i, j) in enumerate(_KELVIN_TO_TENSOR[n]):
        v[k] = T[i, j] if i == j else SQRT2 * T[i, j]
    return v


def kelvin_to_components(v: np.ndarray) -> np.ndarray:
    """
    Tensor components in output ordering xx, yy, zz, xy[, xz, yz].

    Shear entries are physical tensor components (Kelvin value / √2).

    Args:
        v: Kelvin vector, shape (4,) or (6,)

    Returns:
        components: same length as v
    """
    v = np.asarray(v, dtype=np.float64)
    order = _OUTPUT_ORDER[len(v)]
    out = v[order].copy()
    out[3:] /= SQRT2
    return out


def components_to_kelvin(components: np.ndarray) -> np.ndarray:
    """Inverse of kelvin_to_components."""
    components = np.asarray(components, dtype=np.float64)
    order = _OUTPUT_ORDER[len(components)]
    v = np.zeros(len(components))
    v[order] = components
    v[3:] *= SQRT2
    return v


def elasticity_matrix(lame_lambda: float, lame_mu: float, dim: int) -> np.ndarray:
    """
    Isotropic elasticity tensor in Kelvin form.

    C = 2μ I + λ I ⊗ I

    Args:
        lame_lambda: first Lamé parameter λ
        lame_mu: shear modulus μ
        dim: 2 or 3

    Returns:
        C: shape (n, n) with n = kelvin_size(dim)
    """
    ident = identity2(dim)
    return 2.0 * lame_mu * np.eye(kelvin_size(dim)) + lame_lambda * np.outer(ident, ident)
