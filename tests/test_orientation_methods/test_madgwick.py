import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from ahrsfilters import MadgwickAHRS
from ahrsfilters.base import BaseOrientationFilter, BaseType
from ahrsfilters.orientation_methods._madgwick import (
    _imu_jacobian_t,
    _imu_residual,
    _madgwick_update,
    _marg_jacobian_t,
    _marg_residual,
)
from tests.mixins.test_algorithm_mixin import TestAlgorithmMixin
from tests.mixins.test_caching_mixin import TestCachingMixin
from tests.test_orientation_methods.test_ori_method_mixin import TestOrientationMethodMixin


class MetaTestConfig:
    algorithm_class = MadgwickAHRS

    @pytest.fixture()
    def after_action_instance(self, resting_imu_data) -> BaseType:
        mad = MadgwickAHRS()
        mad.estimate(resting_imu_data.iloc[:10])
        return mad

    def assert_after_action_instance(self, instance):
        assert len(instance.orientation_object_) == 11


class TestMetaFunctionality(MetaTestConfig, TestAlgorithmMixin):
    __test__ = True


class TestCachingFunctionality(MetaTestConfig, TestCachingMixin):
    __test__ = True


class TestSimpleRotations(TestOrientationMethodMixin):
    algorithm_class = MadgwickAHRS
    zero_gain_params = {"beta": 0.0}
    __test__ = True

    def test_correction_works(self) -> None:
        """Madgwick should be able to resist small roations if acc does not change."""
        mad = MadgwickAHRS(beta=1.0, sample_period=1 / 50)
        initial_ori = mad.reset().quaternion_.copy()
        for _i in range(50):
            ori = mad.update_imu(np.array([1, 1, 0.0]), np.array([0, 0.0, 1.0]))

        np.testing.assert_array_almost_equal(ori, initial_ori, decimal=1)

    def test_mag_does_something(self):
        """Different magnetic field directions need to result in different orientations."""
        mad_with_y = MadgwickAHRS(beta=1.0, sample_period=1 / 50)
        mad_with_x = mad_with_y.clone()
        for _i in range(50):
            ori_with_y = mad_with_y.update(np.array([1, 1, 0.0]), np.array([0, 0.0, 1.0]), np.array([0, 1.0, 0.0]))
            ori_with_x = mad_with_x.update(np.array([1, 1, 0.0]), np.array([0, 0.0, 1.0]), np.array([1.0, 0.0, 0.0]))

        with pytest.raises(AssertionError):
            # This is the stupid way to test "is the orientation different"
            np.testing.assert_array_almost_equal(ori_with_x, ori_with_y, 2)

    def test_single_step_regression(self):
        mad = MadgwickAHRS(
            beta=0.1,
            sample_period=1 / 256,
            initial_orientation=np.array([0.6869689553, -0.0448678026, 0.0008687666, 0.7252997863]),
        )
        ori = mad.update(
            np.deg2rad([68.75, 34.25, 3.0625]),
            [0.06640625, 0.9794922, -0.01269531],
            [0.171875, -0.4536133, -0.04101563],
        )

        np.testing.assert_allclose(ori, [0.6888611247, -0.0441260593, 0.0018424133, 0.7235467139], atol=1e-6)

    def test_converges_to_gravity(self):
        mad = MadgwickAHRS()
        acc = np.array([-0.0310263246, 0.0304961635, 0.9721632322])
        for _i in range(2000):
            ori = mad.update_imu(np.zeros(3), acc)

        # The fixed step size of the gradient descent causes a small oscillation around the final orientation
        np.testing.assert_allclose(ori, [0.0156666837, 0.0159390414, 0.0, 0.9997502198], atol=5e-4)
        gravity_in_sensor_frame = Rotation.from_quat(ori).apply([0, 0, 1.0], inverse=True)
        np.testing.assert_allclose(gravity_in_sensor_frame, acc / np.linalg.norm(acc), atol=1e-3)

    def test_beta_zero_is_gyro_integration(self):
        ori = np.array([0.1, 0.2, 0.3, 0.9])
        ori /= np.linalg.norm(ori)
        status, with_acc = _madgwick_update(
            np.array([0.5, 0.1, 0.2]),
            np.array([0.0, 1.0, 0.0]),
            initial_orientation=ori,
            sample_period=0.01,
            beta=0.0,
            delta=1e-9,
        )
        no_correction = MadgwickAHRS(initial_orientation=ori, sample_period=0.01).update_gyro([0.5, 0.1, 0.2])

        assert status == 0
        np.testing.assert_array_almost_equal(with_acc, no_correction, decimal=14)


def _numeric_jacobian_t(func, q, n_residuals, eps=1e-6):
    """Central differences of `func` with respect to every component of q, arranged like the transposed Jacobian."""
    j_t = np.zeros((4, n_residuals))
    for i in range(4):
        dq = np.zeros(4)
        dq[i] = eps
        j_t[i] = (func(q + dq) - func(q - dq)) / (2 * eps)
    return j_t


class TestJacobian:
    @pytest.fixture(params=(0, 1, 2))
    def quaternion(self, request):
        q = np.random.normal(size=4)
        return q / np.linalg.norm(q)

    def test_imu_jacobian(self, quaternion):
        acc = np.array([0.1, -0.3, 0.9])
        acc /= np.linalg.norm(acc)

        numeric = _numeric_jacobian_t(lambda q: _imu_residual(q, acc), quaternion, 4)
        analytic = _imu_jacobian_t(quaternion)

        np.testing.assert_allclose(analytic, numeric, atol=1e-6)

    def test_marg_jacobian(self, quaternion):
        acc = np.array([0.1, -0.3, 0.9])
        acc /= np.linalg.norm(acc)
        mag = np.array([0.4, 0.1, -0.8])
        mag /= np.linalg.norm(mag)
        bx, bz = 0.6, -0.8

        numeric = _numeric_jacobian_t(lambda q: _marg_residual(q, acc, mag, bx, bz), quaternion, 6)
        analytic = _marg_jacobian_t(quaternion, bx, bz)

        np.testing.assert_allclose(analytic[:4], numeric, atol=1e-6)
        np.testing.assert_array_equal(analytic[4:], 0)

    @pytest.mark.parametrize("dtype", (np.float32, np.float64))
    def test_kernels_keep_dtype(self, quaternion, dtype):
        q = quaternion.astype(dtype)
        acc = np.array([0.1, -0.3, 0.9], dtype=dtype)
        mag = np.array([0.4, 0.1, -0.8], dtype=dtype)
        bx, bz = dtype(0.6), dtype(-0.8)

        assert _imu_residual(q, acc).dtype == dtype
        assert _imu_jacobian_t(q).dtype == dtype
        assert _marg_residual(q, acc, mag, bx, bz).dtype == dtype
        assert _marg_jacobian_t(q, bx, bz).dtype == dtype

    def test_step_vanishes_at_match(self):
        """If the orientation already explains the measurement, the gradient is zero."""
        q = np.array([0, 0, 0, 1.0])
        step = np.dot(_imu_jacobian_t(q), _imu_residual(q, np.array([0, 0, 1.0])))
        np.testing.assert_array_equal(step, 0)


def test_filter_type():
    assert issubclass(MadgwickAHRS, BaseOrientationFilter)
