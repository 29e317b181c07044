"""A set of numba accelerated quaternion and vector functions.

Note that we follow the same order as :class:`~scipy.spatial.transform.Rotation` (x, y, z, w).

All functions allocate their outputs with the dtype of their (first) input.
Numba compiles a separate specialisation for every input type, so the same functions work for 32 and 64 bit floats.
"""
import numpy as np
from numba import njit


@njit()
def rate_of_change_from_gyro(gyro: np.ndarray, current_orientation: np.ndarray) -> np.ndarray:
    """Rate of change of quaternion from gyroscope.

    This is half the quaternion product of the current orientation with the pure quaternion formed by the gyro.
    """
    qx, qy, qz, qw = current_orientation
    qdot = np.empty_like(current_orientation)
    qdot[0] = 0.5 * (qw * gyro[0] + qy * gyro[2] - qz * gyro[1])
    qdot[1] = 0.5 * (qw * gyro[1] - qx * gyro[2] + qz * gyro[0])
    qdot[2] = 0.5 * (qw * gyro[2] + qx * gyro[1] - qy * gyro[0])
    qdot[3] = 0.5 * (-qx * gyro[0] - qy * gyro[1] - qz * gyro[2])

    return qdot


@njit()
def multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Multiply two quaternions (Hamilton product)."""
    r = np.empty_like(a)
    r[0] = a[3] * b[0] + b[3] * a[0] + a[1] * b[2] - a[2] * b[1]
    r[1] = a[3] * b[1] + b[3] * a[1] + a[2] * b[0] - a[0] * b[2]
    r[2] = a[3] * b[2] + b[3] * a[2] + a[0] * b[1] - a[1] * b[0]
    r[3] = a[3] * b[3] - a[0] * b[0] - a[1] * b[1] - a[2] * b[2]
    return r


@njit()
def conjugate(q: np.ndarray) -> np.ndarray:
    """Conjugate of a quaternion."""
    r = np.empty_like(q)
    r[0] = -q[0]
    r[1] = -q[1]
    r[2] = -q[2]
    r[3] = q[3]
    return r


@njit()
def cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Cross product of two 3D vectors."""
    r = np.empty_like(a)
    r[0] = a[1] * b[2] - a[2] * b[1]
    r[1] = a[2] * b[0] - a[0] * b[2]
    r[2] = a[0] * b[1] - a[1] * b[0]
    return r


@njit()
def normalize(v: np.ndarray) -> np.ndarray:
    """Normalize a vector or a quaternion.

    In case the vector has a length of 0, a copy of the vector is returned without modification.
    """
    out = np.empty_like(v)
    norm = np.sqrt(np.sum(v**2))
    if norm == 0.0:
        out[:] = v
        return out
    for i in range(v.shape[0]):
        out[i] = v[i] / norm
    return out


@njit()
def try_normalize(v: np.ndarray, eps: float):
    """Normalize a vector, if its norm is strictly larger than `eps`.

    Returns
    -------
    success
        False, if the norm of the vector was smaller or equal to `eps`.
        In this case the returned vector is filled with zeros and must not be used.
    normalized_vector
        The vector with unit length

    """
    out = np.empty_like(v)
    norm = np.sqrt(np.sum(v**2))
    if not norm > eps:
        out[:] = 0.0
        return False, out
    for i in range(v.shape[0]):
        out[i] = v[i] / norm
    return True, out


@njit()
def rotate_vector(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rotate a vector by a unit quaternion.

    The vector is treated as pure quaternion and rotated by `q * v * conj(q)`.
    """
    v_quat = np.zeros_like(q)
    v_quat[0] = v[0]
    v_quat[1] = v[1]
    v_quat[2] = v[2]
    h = multiply(multiply(q, v_quat), conjugate(q))
    out = np.empty_like(v)
    out[0] = h[0]
    out[1] = h[1]
    out[2] = h[2]
    return out


@njit()
def integrate_rate_of_change(q: np.ndarray, qdot: np.ndarray, sample_period: float) -> np.ndarray:
    """Integrate the rate of change of a quaternion over one sample and normalize the result."""
    out = np.empty_like(q)
    for i in range(4):
        out[i] = q[i] + qdot[i] * sample_period
    return normalize(out)


@njit()
def gyro_integration_update(gyro: np.ndarray, q: np.ndarray, sample_period: float) -> np.ndarray:
    """Update an orientation by pure integration of the gyroscope without any correction."""
    return integrate_rate_of_change(q, rate_of_change_from_gyro(gyro, q), sample_period)


@njit()
def earth_magnetic_reference(q: np.ndarray, mag: np.ndarray):
    """Reference direction of the earth magnetic field.

    The measured (normalized) magnetic field is rotated by `q` and split into the horizontal magnitude (first element)
    and the vertical component (second element).
    """
    h = rotate_vector(q, mag)
    return np.sqrt(h[0] * h[0] + h[1] * h[1]), h[2]
