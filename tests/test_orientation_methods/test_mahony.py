import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from ahrsfilters import AccelerometerNormZeroError, MagnetometerNormZeroError, MahonyAHRS
from ahrsfilters.base import BaseType
from ahrsfilters.orientation_methods._mahony import _estimated_gravity, _estimated_magnetic_field
from ahrsfilters.utils.fast_quaternion_math import conjugate, rotate_vector
from tests.mixins.test_algorithm_mixin import TestAlgorithmMixin
from tests.mixins.test_caching_mixin import TestCachingMixin
from tests.test_orientation_methods.test_ori_method_mixin import TestOrientationMethodMixin


class MetaTestConfig:
    algorithm_class = MahonyAHRS

    @pytest.fixture()
    def after_action_instance(self, resting_imu_data) -> BaseType:
        mahony = MahonyAHRS(ki=0.1)
        mahony.estimate(resting_imu_data.iloc[:10])
        return mahony

    def assert_after_action_instance(self, instance):
        assert len(instance.orientation_object_) == 11
        assert instance.integral_error_.shape == (3,)


class TestMetaFunctionality(MetaTestConfig, TestAlgorithmMixin):
    __test__ = True


class TestCachingFunctionality(MetaTestConfig, TestCachingMixin):
    __test__ = True


class TestSimpleRotations(TestOrientationMethodMixin):
    algorithm_class = MahonyAHRS
    zero_gain_params = {"kp": 0.0, "ki": 0.0}
    __test__ = True

    def test_single_step_regression(self):
        mahony = MahonyAHRS(
            kp=0.5,
            ki=0.0,
            sample_period=1 / 256,
            initial_orientation=np.array([0.6917700036, -0.0169838640, 0.0265683065, 0.7214290926]),
        )
        ori = mahony.update_imu(np.deg2rad([68.75, 34.25, 3.0625]), [0.06640625, 0.9794922, -0.01269531])

        np.testing.assert_allclose(ori, [0.6934642994, -0.0161568905, 0.0274938924, 0.7197849027], atol=1e-6)

    def test_converges_to_gravity(self):
        mahony = MahonyAHRS(kp=2.0)
        acc = np.array([-0.0310263246, 0.0304961635, 0.9721632322])
        for _i in range(2000):
            ori = mahony.update_imu(np.zeros(3), acc)

        np.testing.assert_allclose(ori, [0.0156666837, 0.0159390414, 0.0, 0.9997502198], atol=2e-5)
        np.testing.assert_allclose(_estimated_gravity(ori), acc / np.linalg.norm(acc), atol=1e-6)

    def test_no_integral_error_without_ki(self):
        mahony = MahonyAHRS(kp=0.5, ki=0.0)
        for _i in range(10):
            mahony.update([0.1, 0.2, 0.3], [0.3, 0.1, 1.0], [0.5, 0.2, -0.4])
            np.testing.assert_array_equal(mahony.integral_error_, 0)

    def test_integral_error_accumulates(self):
        mahony = MahonyAHRS(kp=0.5, ki=0.1, sample_period=0.01)
        mahony.update_imu([0, 0, 0], [0.0, 1.0, 0.0])
        # At the identity the estimated gravity is (0, 0, 1), the error is the cross product with the measurement.
        np.testing.assert_allclose(mahony.integral_error_, np.cross([0.0, 1.0, 0.0], [0, 0, 1.0]) * 0.01)

        first = mahony.integral_error_.copy()
        mahony.update_imu([0, 0, 0], [0.0, 1.0, 0.0])
        assert np.linalg.norm(mahony.integral_error_) > np.linalg.norm(first)

    def test_integral_error_compensates_gyro_bias(self):
        """With ki > 0 a constant gyro bias is learned and the orientation stays aligned with gravity."""
        mahony = MahonyAHRS(kp=1.0, ki=0.5, sample_period=0.01)
        bias = np.array([0.05, -0.03, 0.0])
        for _i in range(5000):
            ori = mahony.update_imu(bias, [0, 0, 1.0])

        np.testing.assert_allclose(mahony.integral_error_ * mahony.ki, -bias, atol=1e-3)
        np.testing.assert_allclose(_estimated_gravity(ori), [0, 0, 1.0], atol=1e-3)

    def test_reset_clears_integral_error(self):
        mahony = MahonyAHRS(ki=0.1)
        mahony.update_imu([0, 0, 0], [0.0, 1.0, 0.0])
        assert np.linalg.norm(mahony.integral_error_) > 0
        mahony.reset()
        np.testing.assert_array_equal(mahony.integral_error_, 0)

    def test_rejected_sample_keeps_integral_error(self):
        mahony = MahonyAHRS(ki=0.1)
        mahony.update([0, 0, 0], [0.0, 1.0, 0.0], [1.0, 0, 0])
        before = mahony.copy()

        with pytest.raises(AccelerometerNormZeroError):
            mahony.update_imu([0, 0, 0], [0, 0, 0])
        with pytest.raises(MagnetometerNormZeroError):
            mahony.update([0, 0, 0], [0.0, 1.0, 0.0], [0, 0, 0])

        np.testing.assert_array_equal(mahony.integral_error_, before.integral_error_)
        np.testing.assert_array_equal(mahony.quaternion_, before.quaternion_)

    def test_estimate_integral_error(self, resting_imu_data):
        mahony = MahonyAHRS(ki=0.1)
        streaming = mahony.clone()
        mahony.estimate(resting_imu_data)

        for _, row in resting_imu_data.iterrows():
            streaming.update_imu(row[["gyr_x", "gyr_y", "gyr_z"]], row[["acc_x", "acc_y", "acc_z"]])

        np.testing.assert_allclose(mahony.integral_error_, streaming.integral_error_, atol=1e-12)

    def test_float32_integral_error(self):
        mahony = MahonyAHRS(ki=0.1, initial_orientation=np.array([0, 0, 0, 1], dtype=np.float32))
        mahony.update_imu([0.1, 0, 0], [0.0, 1.0, 0.0])
        assert mahony.integral_error_.dtype == np.float32

    def test_integral_error_is_read_only(self):
        mahony = MahonyAHRS(ki=0.1)
        mahony.update_imu([0, 0, 0], [0.0, 1.0, 0.0])
        with pytest.raises(ValueError, match="read-only"):
            mahony.integral_error_[:] = 0
        with pytest.raises(ValueError, match="read-only"):
            mahony.copy().integral_error_[:] = 0

    @pytest.mark.parametrize("seed", range(3))
    def test_estimated_magnetic_field(self, seed):
        """The implied field is the earth frame reference (bx, 0, bz) expressed in the sensor frame."""
        q = np.random.default_rng(seed).normal(size=4)
        q /= np.linalg.norm(q)
        bx, bz = 0.6, -0.8

        np.testing.assert_allclose(
            _estimated_magnetic_field(q, bx, bz), rotate_vector(conjugate(q), np.array([bx, 0.0, bz])), atol=1e-12
        )

    def test_mag_aligns_heading(self):
        """A magnetic field measured along the sensor y-axis rotates the sensor until y points north."""
        mahony = MahonyAHRS(kp=2.0)
        for _i in range(2000):
            ori = mahony.update([0, 0, 0], [0, 0, 1.0], [0, 1.0, 0])

        np.testing.assert_allclose(Rotation.from_quat(ori).apply([0, 1.0, 0]), [1.0, 0, 0], atol=1e-3)
        np.testing.assert_allclose(_estimated_gravity(ori), [0, 0, 1.0], atol=1e-6)

    def test_mag_does_something(self):
        """Different magnetic field directions need to result in different orientations."""
        mahony_with_y = MahonyAHRS(kp=1.0, sample_period=1 / 50)
        mahony_with_x = mahony_with_y.clone()
        for _i in range(50):
            ori_with_y = mahony_with_y.update(np.array([1, 1, 0.0]), np.array([0, 0.0, 1.0]), np.array([0, 1.0, 0.0]))
            ori_with_x = mahony_with_x.update(np.array([1, 1, 0.0]), np.array([0, 0.0, 1.0]), np.array([1.0, 0.0, 0.0]))

        with pytest.raises(AssertionError):
            np.testing.assert_array_almost_equal(ori_with_x, ori_with_y, 2)
