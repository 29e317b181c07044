"""Implementation of the MahonyAHRS."""
from typing import Optional, Union

import numpy as np
from joblib import Memory
from numba import njit
from scipy.spatial.transform import Rotation
from tpcp import cf
from typing_extensions import Self

from ahrsfilters.base import BaseOrientationFilter, _as_sensor_vector, _read_only
from ahrsfilters.utils.consts import (
    DEFAULT_KI,
    DEFAULT_KP,
    DEFAULT_SAMPLE_PERIOD,
    STATUS_ACC_NORM_ZERO,
    STATUS_MAG_NORM_ZERO,
    STATUS_OK,
)
from ahrsfilters.utils.datatype_helper import SingleSensorData
from ahrsfilters.utils.exceptions import raise_for_status
from ahrsfilters.utils.fast_quaternion_math import (
    cross,
    earth_magnetic_reference,
    integrate_rate_of_change,
    rate_of_change_from_gyro,
    try_normalize,
)


class MahonyAHRS(BaseOrientationFilter):
    """The MahonyAHRS complementary filter to estimate the orientation of an IMU.

    The gyro values are integrated after they are corrected by a proportional-integral feedback term.
    The error fed back is the cross product between the measured reference directions (gravity from the acc and,
    optionally, the earth magnetic field from the mag) and the directions implied by the current orientation.
    This implementation is based on the paper [1]_.
    An open source C-implementation of the algorithm can be found at [2]_.

    Parameters
    ----------
    kp
        Proportional gain of the feedback.
        A value of 0 (together with `ki` = 0) is identical to just the Gyro Integration.
    ki
        Integral gain of the feedback.
        The integral term can compensate a constant gyro bias.
        If it is 0, the accumulated error is reset to zero with every update.
    sample_period
        The time between two samples in seconds.
    initial_orientation
        The initial orientation of the sensor that is assumed.
        If you pass an array, remember that the order of elements must be x, y, z, w.
        The filter state uses the floating point precision of this array (float32 or float64).
    use_magnetometer
        If True, `estimate` uses the magnetometer columns of the data in addition to gyro and acc.
    memory
        An optional `joblib.Memory` object that can be provided to cache the calls to the mahony series.

    Attributes
    ----------
    quaternion_
        The current orientation of the filter as quaternion (x, y, z, w).
        The array is read-only, the state can only be changed by the update methods and `reset`.
    integral_error_
        The accumulated error vector used for the integral feedback (read-only array).
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

    .. [1] Mahony, R., Hamel, T., & Pflimlin, J.-M. (2008).
           Nonlinear Complementary Filters on the Special Orthogonal Group. IEEE Transactions on Automatic Control,
           53(5), 1203-1218. https://doi.org/10.1109/TAC.2008.923738
    .. [2] http://x-io.co.uk/open-source-imu-and-ahrs-algorithms/

    Examples
    --------
    >>> mahony = MahonyAHRS(kp=0.5, ki=0.0, sample_period=1 / 256)
    >>> mahony.update_imu(gyr=[0.1, 0.0, 0.0], acc=[0.0, 0.0, 1.0])
    array([...])

    See Also
    --------
    ahrsfilters.MadgwickAHRS: Gradient descent filter with the same interface

    """

    kp: float
    ki: float
    sample_period: float
    initial_orientation: Union[np.ndarray, Rotation]
    use_magnetometer: bool
    memory: Optional[Memory]

    integral_error_: np.ndarray

    _state_attributes = ("quaternion_", "integral_error_")

    def __init__(
        self,
        kp: float = DEFAULT_KP,
        ki: float = DEFAULT_KI,
        sample_period: float = DEFAULT_SAMPLE_PERIOD,
        initial_orientation: Union[np.ndarray, Rotation] = cf(np.array([0, 0, 0, 1.0])),
        use_magnetometer: bool = False,
        memory: Optional[Memory] = None,
    ):
        self.kp = kp
        self.ki = ki
        self.sample_period = sample_period
        self.initial_orientation = initial_orientation
        self.use_magnetometer = use_magnetometer
        self.memory = memory

    def reset(self) -> Self:
        """Set the filter state back to the initial orientation and clear the integral error."""
        super().reset()
        self.integral_error_ = _read_only(np.zeros(3, dtype=self.quaternion_.dtype))
        return self

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
            If the accelerometer vector has a norm of zero. Orientation and integral error are not changed.
        MagnetometerNormZeroError
            If the magnetometer vector has a norm of zero. Orientation and integral error are not changed.

        """
        q = self._get_state()
        status, new_q, new_integral_error = _mahony_update_mag(
            _as_sensor_vector(gyr, q.dtype, "gyr"),
            _as_sensor_vector(acc, q.dtype, "acc"),
            _as_sensor_vector(mag, q.dtype, "mag"),
            initial_orientation=q,
            integral_error=self.integral_error_,
            sample_period=self.sample_period,
            kp=self.kp,
            ki=self.ki,
        )
        raise_for_status(status)
        self.quaternion_ = _read_only(new_q)
        self.integral_error_ = _read_only(new_integral_error)
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
            If the accelerometer vector has a norm of zero. Orientation and integral error are not changed.

        """
        q = self._get_state()
        status, new_q, new_integral_error = _mahony_update(
            _as_sensor_vector(gyr, q.dtype, "gyr"),
            _as_sensor_vector(acc, q.dtype, "acc"),
            initial_orientation=q,
            integral_error=self.integral_error_,
            sample_period=self.sample_period,
            kp=self.kp,
            ki=self.ki,
        )
        raise_for_status(status)
        self.quaternion_ = _read_only(new_q)
        self.integral_error_ = _read_only(new_integral_error)
        return new_q.copy()

    def estimate(self, data: SingleSensorData) -> Self:
        """Estimate the orientation of the sensor for every sample of the data.

        The filter is reset to the initial orientation (and a zero integral error) before the first sample.

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

        mahony_update_series = memory.cache(_mahony_update_series)
        rots, rejected, integral_error = mahony_update_series(
            gyro=gyr,
            acc=acc,
            mag=mag,
            initial_orientation=initial_orientation,
            sample_period=self.sample_period,
            kp=self.kp,
            ki=self.ki,
            use_magnetometer=self.use_magnetometer,
        )
        self._store_series_results(rots, rejected)
        self.integral_error_ = _read_only(integral_error.astype(self.quaternion_.dtype))
        return self


@njit()
def _estimated_gravity(q):
    """Direction of gravity in the sensor frame implied by `q`."""
    qx, qy, qz, qw = q
    v = np.empty_like(q[:3])
    v[0] = 2.0 * (qx * qz - qw * qy)
    v[1] = 2.0 * (qw * qx + qy * qz)
    v[2] = qw * qw - qx * qx - qy * qy + qz * qz
    return v


@njit()
def _estimated_magnetic_field(q, bx, bz):
    """Direction of the earth magnetic field in the sensor frame implied by `q` and the reference direction."""
    qx, qy, qz, qw = q
    w = np.empty_like(q[:3])
    w[0] = 2.0 * bx * (0.5 - qy * qy - qz * qz) + 2.0 * bz * (qx * qz - qw * qy)
    w[1] = 2.0 * bx * (qx * qy - qw * qz) + 2.0 * bz * (qw * qx + qy * qz)
    w[2] = 2.0 * bx * (qw * qy + qx * qz) + 2.0 * bz * (0.5 - qx * qx - qy * qy)
    return w


@njit()
def _apply_feedback(gyro, error, q, integral_error, sample_period, kp, ki):
    new_integral_error = np.empty_like(integral_error)
    if ki > 0.0:
        for i in range(3):
            new_integral_error[i] = integral_error[i] + error[i] * sample_period
    else:
        new_integral_error[:] = 0.0

    corrected_gyro = np.empty_like(gyro)
    for i in range(3):
        corrected_gyro[i] = gyro[i] + kp * error[i] + ki * new_integral_error[i]

    qdot = rate_of_change_from_gyro(corrected_gyro, q)
    return STATUS_OK, integrate_rate_of_change(q, qdot, sample_period), new_integral_error


@njit()
def _mahony_update(gyro, acc, initial_orientation, integral_error, sample_period, kp, ki):
    q = initial_orientation
    unchanged_q = np.empty_like(q)
    unchanged_q[:] = q
    unchanged_integral_error = np.empty_like(integral_error)
    unchanged_integral_error[:] = integral_error

    acc_ok, acc_n = try_normalize(acc, 0.0)
    if not acc_ok:
        return STATUS_ACC_NORM_ZERO, unchanged_q, unchanged_integral_error

    error = cross(acc_n, _estimated_gravity(q))
    return _apply_feedback(gyro, error, q, integral_error, sample_period, kp, ki)


@njit()
def _mahony_update_mag(gyro, acc, mag, initial_orientation, integral_error, sample_period, kp, ki):
    q = initial_orientation
    unchanged_q = np.empty_like(q)
    unchanged_q[:] = q
    unchanged_integral_error = np.empty_like(integral_error)
    unchanged_integral_error[:] = integral_error

    acc_ok, acc_n = try_normalize(acc, 0.0)
    if not acc_ok:
        return STATUS_ACC_NORM_ZERO, unchanged_q, unchanged_integral_error
    mag_ok, mag_n = try_normalize(mag, 0.0)
    if not mag_ok:
        return STATUS_MAG_NORM_ZERO, unchanged_q, unchanged_integral_error

    # Reference direction of Earth's magnetic field
    bx, bz = earth_magnetic_reference(q, mag_n)

    # Error is sum of cross product between estimated direction and measured direction of fields
    error = cross(acc_n, _estimated_gravity(q)) + cross(mag_n, _estimated_magnetic_field(q, bx, bz))
    return _apply_feedback(gyro, error, q, integral_error, sample_period, kp, ki)


@njit(cache=True)
def _mahony_update_series(gyro, acc, mag, initial_orientation, sample_period, kp, ki, use_magnetometer):
    out = np.empty((len(gyro) + 1, 4), dtype=initial_orientation.dtype)
    rejected = np.zeros(len(gyro), dtype=np.bool_)
    q = initial_orientation.copy()
    integral_error = np.zeros(3, dtype=initial_orientation.dtype)
    out[0] = q
    for i in range(len(gyro)):  # noqa: consider-using-enumerate
        if use_magnetometer:
            status, q, integral_error = _mahony_update_mag(
                gyro[i], acc[i], mag[i], q, integral_error, sample_period, kp, ki
            )
        else:
            status, q, integral_error = _mahony_update(gyro[i], acc[i], q, integral_error, sample_period, kp, ki)
        rejected[i] = status != STATUS_OK
        out[i + 1] = q

    return out, rejected, integral_error
