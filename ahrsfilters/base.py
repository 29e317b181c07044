"""Base classes for all orientation filters."""

import copy
import warnings
from typing import Optional, TypeVar, Union

import numpy as np
import pandas as pd
import tpcp
from joblib import Memory
from scipy.spatial.transform import Rotation
from typing_extensions import Protocol, runtime_checkable

from ahrsfilters.utils.consts import GF_INDEX, GF_ORI, SF_ACC, SF_GYR, SF_MAG
from ahrsfilters.utils.datatype_helper import SingleSensorData, SingleSensorOrientationList, is_single_sensor_data
from ahrsfilters.utils.fast_quaternion_math import gyro_integration_update, normalize

BaseType = TypeVar("BaseType", bound="BaseAlgorithm")  # noqa: invalid-name


class BaseAlgorithm(tpcp.Algorithm):
    """Base class for all algorithms.

    All type-specific algorithm classes should inherit from this class and need to

    1. overwrite `_action_methods` with the names of the actual action methods of this class type
    2. implement a stub for the action methods

    """


@runtime_checkable
class AhrsFilter(Protocol):
    """The capabilities every orientation filter provides.

    All methods take sensor triples as array-likes with 3 elements and return the updated orientation as
    quaternion in (x, y, z, w) order.
    """

    def update(self, gyr: np.ndarray, acc: np.ndarray, mag: np.ndarray) -> np.ndarray:
        """Update the orientation with gyroscope, accelerometer and magnetometer values."""

    def update_imu(self, gyr: np.ndarray, acc: np.ndarray) -> np.ndarray:
        """Update the orientation with gyroscope and accelerometer values."""

    def update_gyro(self, gyr: np.ndarray) -> np.ndarray:
        """Update the orientation with gyroscope values only."""


def _as_sensor_vector(value, dtype: np.dtype, name: str) -> np.ndarray:
    vector = np.ascontiguousarray(value, dtype=dtype)
    if vector.shape != (3,):
        raise ValueError(f"`{name}` is expected to be a vector with 3 elements, but it has the shape {vector.shape}.")
    return vector


def _read_only(array: np.ndarray) -> np.ndarray:
    array.flags.writeable = False
    return array


def _to_unit_quaternion(orientation: Union[np.ndarray, Rotation]) -> np.ndarray:
    if isinstance(orientation, Rotation):
        orientation = orientation.as_quat()
    quat = np.array(orientation)
    if quat.dtype not in (np.float32, np.float64):
        quat = quat.astype(np.float64)
    if quat.shape != (4,):
        raise ValueError(
            "The initial orientation is expected to be a single quaternion with 4 elements (x, y, z, w), "
            f"but it has the shape {quat.shape}."
        )
    if not np.sqrt(np.sum(quat**2)) > 0:
        raise ValueError("The initial orientation must not be a quaternion with zero norm.")
    return normalize(np.ascontiguousarray(quat))


class BaseOrientationFilter(BaseAlgorithm):
    """Base class for the orientation filters.

    The filter state is created from `initial_orientation` the first time it is needed (or when :meth:`reset` is
    called) and then updated by every call to one of the update methods.
    The state is stored with the same floating point precision as the initial orientation.
    """

    _action_methods = ("estimate",)
    _state_attributes = ("quaternion_",)

    sample_period: float
    initial_orientation: Union[np.ndarray, Rotation]
    use_magnetometer: bool
    memory: Optional[Memory]

    quaternion_: np.ndarray
    orientation_object_: Rotation
    rejected_samples_: np.ndarray

    data: SingleSensorData

    @property
    def orientation_(self) -> SingleSensorOrientationList:
        """Orientations of the last call to `estimate` as pd.DataFrame."""
        df = pd.DataFrame(self.orientation_object_.as_quat(), columns=GF_ORI)
        df.index.name = GF_INDEX
        return df

    def reset(self: BaseType) -> BaseType:
        """Set the filter state back to the initial orientation."""
        self.quaternion_ = _read_only(_to_unit_quaternion(self.initial_orientation))
        return self

    def copy(self: BaseType) -> BaseType:
        """Create an independent copy of the filter including its current state.

        In contrast to `clone`, which only copies the parameters, the copy continues exactly where the original filter
        is right now.
        Feeding the same samples to the copy and the original results in identical orientations.
        """
        new = copy.deepcopy(self)
        for name in self._state_attributes:
            if hasattr(new, name):
                _read_only(getattr(new, name))
        return new

    def _get_state(self) -> np.ndarray:
        if getattr(self, "quaternion_", None) is None:
            self.reset()
        return self.quaternion_

    def update_gyro(self, gyr: np.ndarray) -> np.ndarray:
        """Update the orientation by integrating the gyroscope without any correction.

        Parameters
        ----------
        gyr
            Gyroscope reading in rad/s

        Returns
        -------
        quaternion
            A copy of the updated orientation (x, y, z, w)

        """
        q = self._get_state()
        self.quaternion_ = _read_only(
            gyro_integration_update(_as_sensor_vector(gyr, q.dtype, "gyr"), q, self.sample_period)
        )
        return self.quaternion_.copy()

    def update(self, gyr: np.ndarray, acc: np.ndarray, mag: np.ndarray) -> np.ndarray:
        """Update the orientation with gyroscope, accelerometer and magnetometer values."""
        raise NotImplementedError("Needs to be implemented by child class.")

    def update_imu(self, gyr: np.ndarray, acc: np.ndarray) -> np.ndarray:
        """Update the orientation with gyroscope and accelerometer values."""
        raise NotImplementedError("Needs to be implemented by child class.")

    def estimate(self: BaseType, data: SingleSensorData) -> BaseType:
        """Estimate the orientation for every sample of the provided data."""
        raise NotImplementedError("Needs to be implemented by child class.")

    def _prepare_estimate(self, data: SingleSensorData):
        """Validate the data, reset the filter and extract the sensor values as contiguous float64 arrays."""
        is_single_sensor_data(data, check_mag=self.use_magnetometer, raise_exception=True)
        self.reset()
        gyr = np.ascontiguousarray(data[SF_GYR].to_numpy(), dtype=np.float64)
        acc = np.ascontiguousarray(data[SF_ACC].to_numpy(), dtype=np.float64)
        if self.use_magnetometer:
            mag = np.ascontiguousarray(data[SF_MAG].to_numpy(), dtype=np.float64)
        else:
            mag = np.zeros_like(acc)
        memory = self.memory
        if memory is None:
            memory = Memory(None)
        return gyr, acc, mag, self.quaternion_.astype(np.float64), memory

    def _store_series_results(self, rots: np.ndarray, rejected: np.ndarray) -> None:
        self.orientation_object_ = Rotation.from_quat(rots)
        self.rejected_samples_ = rejected
        self.quaternion_ = _read_only(np.array(rots[-1], dtype=self.quaternion_.dtype))
        n_rejected = int(np.sum(rejected))
        if n_rejected > 0:
            warnings.warn(
                f"{n_rejected} of {len(rejected)} samples were discarded, because the accelerometer "
                f"{'or magnetometer ' if self.use_magnetometer else ''}values had a norm of zero. "
                "The orientation was carried over unchanged for these samples. "
                "Check `rejected_samples_` to find the affected samples."
            )
