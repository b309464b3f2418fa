"""Geodetic (LLH) and local NED frame conversions into ECEF.

This module implements the transformations needed to place a body frame
(position, velocity and attitude) in Earth-Centered Earth-Fixed (ECEF)
coordinates from a geodetic position and a local North-East-Down attitude.

WGS84 ellipsoid parameters:
- Semi-major axis (a): 6378137.0 m
- Flattening (f): 1/298.257223563
- Semi-minor axis (b): 6356752.314245 m
- First eccentricity squared (e²): 0.00669437999014

Reference: Groves, Chapter 2, Sections 2.4-2.5.
"""

import numpy as np
from numpy.typing import NDArray

# WGS84 ellipsoid parameters
WGS84_A = 6378137.0  # Semi-major axis (m)
WGS84_F = 1.0 / 298.257223563  # Flattening
WGS84_B = WGS84_A * (1.0 - WGS84_F)  # Semi-minor axis (m)
WGS84_E2 = 1.0 - (WGS84_B / WGS84_A) ** 2  # First eccentricity squared


def llh_to_ecef(
    lat: float,
    lon: float,
    height: float,
) -> NDArray[np.float64]:
    """Convert geodetic coordinates (LLH) to ECEF Cartesian coordinates.

    Args:
        lat: Latitude in radians (positive north).
        lon: Longitude in radians (positive east).
        height: Height above WGS84 ellipsoid in meters.

    Returns:
        ECEF coordinates as numpy array [x, y, z] in meters.

    Example:
        >>> llh_to_ecef(0.0, 0.0, 0.0)  # equator, prime meridian
        array([6378137.,       0.,       0.])
    """
    # Radius of curvature in the prime vertical
    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)
    N = WGS84_A / np.sqrt(1.0 - WGS84_E2 * sin_lat**2)

    x = (N + height) * cos_lat * np.cos(lon)
    y = (N + height) * cos_lat * np.sin(lon)
    z = (N * (1.0 - WGS84_E2) + height) * sin_lat

    return np.array([x, y, z], dtype=np.float64)


def ned_to_ecef_rotation(lat: float, lon: float) -> NDArray[np.float64]:
    """Rotation matrix C_n_e from local NED axes to ECEF axes.

    Implements the transpose of Groves Eq. (2.150):

        C_e_n = [-sinφ·cosλ   -sinφ·sinλ    cosφ]
                [-sinλ         cosλ         0   ]
                [-cosφ·cosλ   -cosφ·sinλ   -sinφ]

    Args:
        lat: Latitude φ in radians.
        lon: Longitude λ in radians.

    Returns:
        3x3 rotation matrix C_n_e.
    """
    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)
    sin_lon = np.sin(lon)
    cos_lon = np.cos(lon)

    C_e_n = np.array(
        [
            [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],
            [-sin_lon, cos_lon, 0.0],
            [-cos_lat * cos_lon, -cos_lat * sin_lon, -sin_lat],
        ],
        dtype=np.float64,
    )
    return C_e_n.T


def ned_to_ecef_frame(
    lat: float,
    lon: float,
    height: float,
    v_ned: NDArray[np.float64],
    C_b_n: NDArray[np.float64],
):
    """Express a body frame given in local NED terms in ECEF terms.

    Args:
        lat: Latitude in radians.
        lon: Longitude in radians.
        height: Height above WGS84 ellipsoid in meters.
        v_ned: Body velocity resolved in NED axes (m/s), shape (3,).
        C_b_n: Body-to-NED rotation matrix, shape (3, 3).

    Returns:
        Tuple of (r_e, v_e, C_b_e):
            r_e: ECEF position (m).
            v_e: ECEF velocity (m/s).
            C_b_e: Body-to-ECEF rotation matrix.
    """
    v_ned = np.asarray(v_ned, dtype=np.float64)
    C_b_n = np.asarray(C_b_n, dtype=np.float64)
    if v_ned.shape != (3,):
        raise ValueError(f"v_ned must have shape (3,), got {v_ned.shape}")
    if C_b_n.shape != (3, 3):
        raise ValueError(f"C_b_n must have shape (3, 3), got {C_b_n.shape}")

    C_n_e = ned_to_ecef_rotation(lat, lon)
    r_e = llh_to_ecef(lat, lon, height)
    v_e = C_n_e @ v_ned
    C_b_e = C_n_e @ C_b_n

    return r_e, v_e, C_b_e
