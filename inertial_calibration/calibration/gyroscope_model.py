"""
Gyroscope error model with known bias.

The measured angular rate of a gyroscope with known bias b_g is modelled as

    Ω_meas = b_g + (I + M_g) Ω_true + G_g f_true

with the scale factor and cross-coupling matrix

    M_g = [ sx   mxy  mxz ]
          [ myx  sy   myz ]
          [ mzx  mzy  sz  ]

and the g-dependent cross-bias matrix G_g. The model is linear in the 18
unknowns, which are packed in the order

    sx, sy, sz, mxy, mxz, myx, myz, mzx, mzy,
    g11, g21, g31, g12, g22, g32, g13, g23, g33   (G_g column-major)

When the gyroscope and accelerometer share a common z axis, myx, mzx and
mzy are zero and the 15 remaining unknowns keep the same relative order.

Rearranging the model, each measurement k contributes three linear rows

    Ω_meas,k - b_g - Ω_true,k = A_k x

which are stacked by design_matrix() for all measurements.
"""

import numpy as np

# Number of unknowns for the general model and the common-axis model.
GENERAL_UNKNOWNS = 18
COMMON_AXIS_UNKNOWNS = 15

# Parameter index of each M_g entry (row, column).
MG_INDEX = np.array(
    [
        [0, 3, 4],
        [5, 1, 6],
        [7, 8, 2],
    ]
)

# Parameter indices fixed to zero when a common axis is used (myx, mzx, mzy).
COMMON_AXIS_FIXED = (5, 7, 8)

COMMON_AXIS_FREE = tuple(
    i for i in range(GENERAL_UNKNOWNS) if i not in COMMON_AXIS_FIXED
)


def gg_index(row: int, col: int) -> int:
    return 9 + 3 * col + row


def num_unknowns(common_axis_used: bool) -> int:
    return COMMON_AXIS_UNKNOWNS if common_axis_used else GENERAL_UNKNOWNS


def pack_parameters(
    mg: np.ndarray, gg: np.ndarray, common_axis_used: bool = False
) -> np.ndarray:
    """Pack M_g and G_g into a parameter vector."""
    mg = np.asarray(mg, dtype=np.float64)
    gg = np.asarray(gg, dtype=np.float64)
    x = np.zeros(GENERAL_UNKNOWNS)
    for i in range(3):
        for j in range(3):
            x[MG_INDEX[i, j]] = mg[i, j]
            x[gg_index(i, j)] = gg[i, j]
    if common_axis_used:
        return x[list(COMMON_AXIS_FREE)]
    return x


def unpack_parameters(x: np.ndarray, common_axis_used: bool = False):
    """
    Unpack a parameter vector into (M_g, G_g).

    Raises:
        ValueError: If the vector length does not match the model.
    """
    x = np.asarray(x, dtype=np.float64).reshape(-1)
    expected = num_unknowns(common_axis_used)
    if len(x) != expected:
        raise ValueError(f"Expected {expected} parameters, got {len(x)}")
    if common_axis_used:
        full = np.zeros(GENERAL_UNKNOWNS)
        full[list(COMMON_AXIS_FREE)] = x
        x = full

    mg = np.zeros((3, 3))
    gg = np.zeros((3, 3))
    for i in range(3):
        for j in range(3):
            mg[i, j] = x[MG_INDEX[i, j]]
            gg[i, j] = x[gg_index(i, j)]
    return mg, gg


def design_matrix(
    true_rates: np.ndarray,
    true_forces: np.ndarray,
    common_axis_used: bool = False,
) -> np.ndarray:
    """
    Stack the linear model rows of all measurements.

    Args:
        true_rates: Expected angular rates, shape (N, 3).
        true_forces: Expected specific forces, shape (N, 3).
        common_axis_used: Drop the myx, mzx and mzy columns.

    Returns:
        Design matrix of shape (3N, 18) or (3N, 15). Row 3k + i holds axis i
        of measurement k.
    """
    true_rates = np.asarray(true_rates, dtype=np.float64)
    true_forces = np.asarray(true_forces, dtype=np.float64)
    n = len(true_rates)

    A = np.zeros((3 * n, GENERAL_UNKNOWNS))
    for i in range(3):
        for j in range(3):
            A[i::3, MG_INDEX[i, j]] = true_rates[:, j]
            A[i::3, gg_index(i, j)] = true_forces[:, j]

    if common_axis_used:
        return A[:, list(COMMON_AXIS_FREE)]
    return A


def common_axis_jacobian() -> np.ndarray:
    """Jacobian (18 x 15) of the general parameters w.r.t. the common-axis ones."""
    J = np.zeros((GENERAL_UNKNOWNS, COMMON_AXIS_UNKNOWNS))
    for col, row in enumerate(COMMON_AXIS_FREE):
        J[row, col] = 1.0
    return J


def predict_angular_rates(
    bias: np.ndarray,
    mg: np.ndarray,
    gg: np.ndarray,
    true_rates: np.ndarray,
    true_forces: np.ndarray,
) -> np.ndarray:
    """Angular rates predicted by the model, shape (N, 3)."""
    true_rates = np.atleast_2d(true_rates)
    true_forces = np.atleast_2d(true_forces)
    return bias + true_rates @ (np.eye(3) + mg).T + true_forces @ np.asarray(gg).T


def residual_norms(
    measured_rates: np.ndarray,
    bias: np.ndarray,
    mg: np.ndarray,
    gg: np.ndarray,
    true_rates: np.ndarray,
    true_forces: np.ndarray,
) -> np.ndarray:
    """Euclidean norm of predicted minus measured angular rate, shape (N,)."""
    predicted = predict_angular_rates(bias, mg, gg, true_rates, true_forces)
    return np.linalg.norm(predicted - np.atleast_2d(measured_rates), axis=1)
