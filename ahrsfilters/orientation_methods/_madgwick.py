"""Implementation of the MadgwickAHRS."""
from typing import Optional, Union

import numpy as np
from joblib import Memory
from numba import njit
from scipy.spatial.transform import Rotation
from tpcp import cf
from typing_extensions import Self

from ahrsfilters.base import BaseOrientationFilter, _as_sensor_vector, _read_only
from ahrsfilters.utils.consts import (
    DEFAULT_BETA,
    DEFAULT_GRADIENT_STABILIZER,
    DEFAULT_SAMPLE_PERIOD,
    STATUS_ACC_NORM_ZERO,
    STATUS_MAG_NORM_ZERO,
    STATUS_OK,
)
from ahrsfilters.utils.datatype_helper import SingleSensorData
from ahrsfilters.utils.exceptions import raise_for_status
from ahrsfilters.utils.fast_quaternion_math import (
    earth_magnetic_reference,
    integrate_rate_of_change,
    rate_of_change_from_gyro,
    try_normalize,
)


class MadgwickAHRS(BaseOrientationFilter):
    """The MadgwickAHRS algorithm to estimate the orientation of an IMU.

    This method applies a simple gyro integration with an additional correction step that tries to align the estimated
    orientation of the z-axis with gravity direction estimated from the acceleration data.
    If magnetometer values are provided, the estimated direction of the earth magnetic field is additionally aligned
    with the measured one.
    The correction is a single step of a gradient descent on the misalignment between the expected and the measured
    reference directions.
    This implementation is based on the paper [1]_.
    An open source C-implementation of the algorithm can be found at [2]_.

    Parameters
    ----------
    beta
        This parameter controls how harsh the correction is.
        A high value performs large corrections and a small value small and gradual correction.
        A high value should only be used if the sensor is moved slowly.
        A value of 0 is identical to just the Gyro Integration.
    delta
        Small value added to the norm of the gradient step, before the step is normalized.
        This avoids a division by zero, if the estimated orientation already perfectly matches the measurements.
    sample_period
        The time between two samples in seconds.
    initial_orientation
        The initial orientation of the sensor that is assumed.
        It is critical that this value is close to the actual orientation.
        Otherwise, the estimated orientation will drift until the real orientation is found.
        If you pass an array, remember that the order of elements must be x, y, z, w.
        The filter state uses the floating point precision of this array (float32 or float64).
    use_magnetometer
        If True, `estimate` uses the magnetometer columns of the data in addition to gyro and acc.
    memory
        An optional `joblib.Memory` object that can be provided to cache the calls to the madgwick series.

    Attributes
    ----------
    quaternion_
        The current orientation of the filter as quaternion (x, y, z, w).
        The array is read-only, the state can only be changed by the update methods and `reset`.
    orientation_
        The rotations of the last `estimate` call as a *SingleSensorOrientationList*, including the initial
        orientation.
        This means the there are len(data) + 1 orientations.
    orientation_object_
        The orientations of the last `estimate` call as a single scipy Rotation object
    rejected_samples_
        Boolean array marking the samples of the last `estimate` call that were discarded, because the reference
        vectors had a norm of zero.

    Other Parameters
    ----------------
    data
        The data passed to the estimate method

    Notes
    -----
    The update methods use *Numba* as a just-in-time-compiler to achieve fast run times.
    In result, the first execution of the algorithm will take longer as the methods need to be compiled first.
    This happens once for every floating point precision that is used.

    .. [1] Madgwick, S. O. H., Harrison, A. J. L., & Vaidyanathan, R. (2011).
           Estimation of IMU and MARG orientation using a gradient descent algorithm. IEEE International Conference on
           Rehabilitation Robotics, 1-7. https://doi.org/10.1109/ICORR.2011.5975346
    .. [2] http://x-io.co.uk/open-source-imu-and-ahrs-algorithms/

    Examples
    --------
    Feed a single sample (gyro in rad/s) and get the updated orientation

    >>> mad = MadgwickAHRS(beta=0.1, sample_period=1 / 256)
    >>> mad.update(gyr=[0.1, 0.0, 0.0], acc=[0.0, 0.0, 1.0], mag=[0.3, 0.0, 0.4])
    array([...])

    Or apply the filter to recorded data with columns defined by :obj:`~ahrsfilters.utils.consts.SF_COLS`.

    >>> import pandas as pd
    >>> from ahrsfilters.utils.consts import SF_COLS
    >>> data = pd.DataFrame(..., columns=SF_COLS)
    >>> mad = MadgwickAHRS(use_magnetometer=True).estimate(data)
    >>> mad.orientation_
    <pd.Dataframe with resulting quaternions>

    See Also
    --------
    ahrsfilters.MahonyAHRS: Complementary filter with the same interface

    """

    beta: float
    delta: float
    sample_period: float
    initial_orientation: Union[np.ndarray, Rotation]
    use_magnetometer: bool
    memory: Optional[Memory]

    def __init__(
        self,
        beta: float = DEFAULT_BETA,
        delta: float = DEFAULT_GRADIENT_STABILIZER,
        sample_period: float = DEFAULT_SAMPLE_PERIOD,
        initial_orientation: Union[np.ndarray, Rotation] = cf(np.array([0, 0, 0, 1.0])),
        use_magnetometer: bool = False,
        memory: Optional[Memory] = None,
    ):
        self.beta = beta
        self.delta = delta
        self.sample_period = sample_period
        self.initial_orientation = initial_orientation
        self.use_magnetometer = use_magnetometer
        self.memory = memory

    def update(self, gyr: np.ndarray, acc: np.ndarray, mag: np.ndarray) -> np.ndarray:
        """Update the orientation with gyroscope, accelerometer and magnetometer values.

        Parameters
        ----------
        gyr
            Gyroscope reading in rad/s
        acc
            Accelerometer reading in any unit
        mag
            Magnetometer reading in any unit

        Returns
        -------
        quaternion
            A copy of the updated orientation (x, y, z, w)

        Raises
        ------
        AccelerometerNormZeroError
            If the accelerometer vector has a norm of zero. The filter state is not changed.
        MagnetometerNormZeroError
            If the magnetometer vector has a norm of zero. The filter state is not changed.

        """
        q = self._get_state()
        status, new_q = _madgwick_update_mag(
            _as_sensor_vector(gyr, q.dtype, "gyr"),
            _as_sensor_vector(acc, q.dtype, "acc"),
            _as_sensor_vector(mag, q.dtype, "mag"),
            initial_orientation=q,
            sample_period=self.sample_period,
            beta=self.beta,
            delta=self.delta,
        )
        raise_for_status(status)
        self.quaternion_ = _read_only(new_q)
        return new_q.copy()

    def update_imu(self, gyr: np.ndarray, acc: np.ndarray) -> np.ndarray:
        """Update the orientation with gyroscope and accelerometer values.

        Parameters
        ----------
        gyr
            Gyroscope reading in rad/s
        acc
            Accelerometer reading in any unit

        Returns
        -------
        quaternion
            A copy of the updated orientation (x, y, z, w)

        Raises
        ------
        AccelerometerNormZeroError
            If the accelerometer vector has a norm of zero. The filter state is not changed.

        """
        q = self._get_state()
        status, new_q = _madgwick_update(
            _as_sensor_vector(gyr, q.dtype, "gyr"),
            _as_sensor_vector(acc, q.dtype, "acc"),
            initial_orientation=q,
            sample_period=self.sample_period,
            beta=self.beta,
            delta=self.delta,
        )
        raise_for_status(status)
        self.quaternion_ = _read_only(new_q)
        return new_q.copy()

    def estimate(self, data: SingleSensorData) -> Self:
        """Estimate the orientation of the sensor for every sample of the data.

        The filter is reset to the initial orientation before the first sample.

        Parameters
        ----------
        data
            Continuous sensor data including gyro and acc values (and mag values, if `use_magnetometer` is True).
            The gyro data is expected to be in rad/s!

        Returns
        -------
        self
            The class instance with all result attributes populated

        """
        self.data = data
        gyr, acc, mag, initial_orientation, memory = self._prepare_estimate(data)

        madgwick_update_series = memory.cache(_madgwick_update_series)
        rots, rejected = madgwick_update_series(
            gyro=gyr,
            acc=acc,
            mag=mag,
            initial_orientation=initial_orientation,
            sample_period=self.sample_period,
            beta=self.beta,
            delta=self.delta,
            use_magnetometer=self.use_magnetometer,
        )
        self._store_series_results(rots, rejected)
        return self


@njit()
def _imu_residual(q, acc):
    """Difference between the gravity direction implied by `q` and the measured one.

    The last element is always zero and only exists to keep the shape of the Jacobian square.
    """
    qx, qy, qz, qw = q
    f = np.zeros_like(q)
    f[0] = 2.0 * (qx * qz - qw * qy) - acc[0]
    f[1] = 2.0 * (qw * qx + qy * qz) - acc[1]
    f[2] = 2.0 * (0.5 - qx * qx - qy * qy) - acc[2]
    return f


@njit()
def _imu_jacobian_t(q):
    """Transposed Jacobian of `_imu_residual` with respect to the components of `q` (rows in x, y, z, w order)."""
    qx, qy, qz, qw = q
    j_t = np.zeros((4, 4), dtype=q.dtype)
    j_t[0, 0] = 2.0 * qz
    j_t[0, 1] = 2.0 * qw
    j_t[0, 2] = -4.0 * qx
    j_t[1, 0] = -2.0 * qw
    j_t[1, 1] = 2.0 * qz
    j_t[1, 2] = -4.0 * qy
    j_t[2, 0] = 2.0 * qx
    j_t[2, 1] = 2.0 * qy
    j_t[3, 0] = -2.0 * qy
    j_t[3, 1] = 2.0 * qx
    return j_t


@njit()
def _marg_residual(q, acc, mag, bx, bz):
    """Difference between the gravity and magnetic field directions implied by `q` and the measured ones."""
    qx, qy, qz, qw = q
    f = np.empty(6, dtype=q.dtype)
    f[0] = 2.0 * (qx * qz - qw * qy) - acc[0]
    f[1] = 2.0 * (qw * qx + qy * qz) - acc[1]
    f[2] = 2.0 * (0.5 - qx * qx - qy * qy) - acc[2]
    f[3] = 2.0 * bx * (0.5 - qy * qy - qz * qz) + 2.0 * bz * (qx * qz - qw * qy) - mag[0]
    f[4] = 2.0 * bx * (qx * qy - qw * qz) + 2.0 * bz * (qw * qx + qy * qz) - mag[1]
    f[5] = 2.0 * bx * (qw * qy + qx * qz) + 2.0 * bz * (0.5 - qx * qx - qy * qy) - mag[2]
    return f


@njit()
def _marg_jacobian_t(q, bx, bz):
    """Transposed Jacobian of `_marg_residual` with respect to the components of `q`.

    The rows are in x, y, z, w order.
    The last two rows are zero and only exist to keep the matrix square.
    """
    qx, qy, qz, qw = q
    j_t = np.zeros((6, 6), dtype=q.dtype)
    j_t[0, 0] = 2.0 * qz
    j_t[0, 1] = 2.0 * qw
    j_t[0, 2] = -4.0 * qx
    j_t[0, 3] = 2.0 * bz * qz
    j_t[0, 4] = 2.0 * bx * qy + 2.0 * bz * qw
    j_t[0, 5] = 2.0 * bx * qz - 4.0 * bz * qx

    j_t[1, 0] = -2.0 * qw
    j_t[1, 1] = 2.0 * qz
    j_t[1, 2] = -4.0 * qy
    j_t[1, 3] = -4.0 * bx * qy - 2.0 * bz * qw
    j_t[1, 4] = 2.0 * bx * qx + 2.0 * bz * qz
    j_t[1, 5] = 2.0 * bx * qw - 4.0 * bz * qy

    j_t[2, 0] = 2.0 * qx
    j_t[2, 1] = 2.0 * qy
    j_t[2, 3] = -4.0 * bx * qz + 2.0 * bz * qx
    j_t[2, 4] = -2.0 * bx * qw + 2.0 * bz * qy
    j_t[2, 5] = 2.0 * bx * qx

    j_t[3, 0] = -2.0 * qy
    j_t[3, 1] = 2.0 * qx
    j_t[3, 3] = -2.0 * bz * qy
    j_t[3, 4] = -2.0 * bx * qz + 2.0 * bz * qx
    j_t[3, 5] = 2.0 * bx * qy
    return j_t


@njit()
def _apply_gradient_step(qdot, step, beta, delta):
    """Subtract the normalized gradient step scaled by beta from the rate of change (in place)."""
    norm = np.sqrt(step[0] ** 2 + step[1] ** 2 + step[2] ** 2 + step[3] ** 2) + delta
    for i in range(4):
        qdot[i] -= beta * step[i] / norm


@njit()
def _madgwick_update(gyro, acc, initial_orientation, sample_period, beta, delta):
    q = initial_orientation
    unchanged = np.empty_like(q)
    unchanged[:] = q

    acc_ok, acc_n = try_normalize(acc, 0.0)
    if not acc_ok:
        return STATUS_ACC_NORM_ZERO, unchanged

    # Gradient decent algorithm corrective step
    step = np.dot(_imu_jacobian_t(q), _imu_residual(q, acc_n))

    qdot = rate_of_change_from_gyro(gyro, q)
    _apply_gradient_step(qdot, step, beta, delta)

    return STATUS_OK, integrate_rate_of_change(q, qdot, sample_period)


@njit()
def _madgwick_update_mag(gyro, acc, mag, initial_orientation, sample_period, beta, delta):
    q = initial_orientation
    unchanged = np.empty_like(q)
    unchanged[:] = q

    acc_ok, acc_n = try_normalize(acc, 0.0)
    if not acc_ok:
        return STATUS_ACC_NORM_ZERO, unchanged
    mag_ok, mag_n = try_normalize(mag, 0.0)
    if not mag_ok:
        return STATUS_MAG_NORM_ZERO, unchanged

    # Reference direction of Earth's magnetic field
    bx, bz = earth_magnetic_reference(q, mag_n)

    # Gradient decent algorithm corrective step
    step = np.dot(_marg_jacobian_t(q, bx, bz), _marg_residual(q, acc_n, mag_n, bx, bz))

    qdot = rate_of_change_from_gyro(gyro, q)
    _apply_gradient_step(qdot, step, beta, delta)

    return STATUS_OK, integrate_rate_of_change(q, qdot, sample_period)


@njit(cache=True)
def _madgwick_update_series(gyro, acc, mag, initial_orientation, sample_period, beta, delta, use_magnetometer):
    out = np.empty((len(gyro) + 1, 4), dtype=initial_orientation.dtype)
    rejected = np.zeros(len(gyro), dtype=np.bool_)
    q = initial_orientation.copy()
    out[0] = q
    for i in range(len(gyro)):  # noqa: consider-using-enumerate
        if use_magnetometer:
            status, q = _madgwick_update_mag(gyro[i], acc[i], mag[i], q, sample_period, beta, delta)
        else:
            status, q = _madgwick_update(gyro[i], acc[i], q, sample_period, beta, delta)
        rejected[i] = status != STATUS_OK
        out[i + 1] = q

    return out, rejected
