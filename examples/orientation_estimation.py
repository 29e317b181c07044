r"""
.. _example_orientation_estimation:

Orientation estimation
======================

This example shows the two ways the filters in this package can be used.
Samples can be fed one at a time with the `update` methods, which is what you would do with a live sensor stream.
Recorded data can be processed in one go with `estimate`.

Both :class:`~ahrsfilters.MadgwickAHRS` and :class:`~ahrsfilters.MahonyAHRS` provide the same methods and can be
exchanged without changing the rest of the code.
"""

# %%
# Creating some data
# ------------------
#
# We simulate a sensor that rotates around its z-axis with 90 deg/s, while it is tilted by 20 deg around the x-axis.
# The gyro measures the rotation in the sensor frame.
# The accelerometer measures gravity and the magnetometer a field pointing north and downwards.
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from scipy.spatial.transform import Rotation

from ahrsfilters import AhrsUpdateError, MadgwickAHRS, MahonyAHRS
from ahrsfilters.utils.consts import SF_ACC, SF_GYR, SF_MAG

sample_period = 1 / 100
n_samples = 400

tilt = Rotation.from_euler("x", 20, degrees=True)
true_orientation = Rotation.from_euler("z", np.linspace(0, 90 * n_samples * sample_period, n_samples), degrees=True)
true_orientation = true_orientation * tilt

gravity = np.array([0, 0, 9.81])
magnetic_field = np.array([20.0, 0, -40.0])

data = pd.DataFrame(
    np.column_stack(
        [
            true_orientation.apply(gravity, inverse=True),
            np.repeat(tilt.apply(np.deg2rad([0, 0, 90]), inverse=True)[None, :], n_samples, axis=0),
            true_orientation.apply(magnetic_field, inverse=True),
        ]
    ),
    columns=[*SF_ACC, *SF_GYR, *SF_MAG],
)
data.head()

# %%
# Streaming updates
# -----------------
#
# The filters start with the identity orientation, which is wrong by 20 deg in our case.
# Every update corrects a little bit of this error.
# A sample with a zero accelerometer (or magnetometer) vector can not be used and raises an error.
# The filter state is not changed in this case and the sample can simply be skipped.
madgwick = MadgwickAHRS(beta=0.5, sample_period=sample_period)
mahony = MahonyAHRS(kp=2.0, sample_period=sample_period)

streaming_results = {"madgwick": [], "mahony": []}
for _, sample in data.iterrows():
    for name, ahrs in (("madgwick", madgwick), ("mahony", mahony)):
        try:
            quat = ahrs.update(sample[SF_GYR], sample[SF_ACC], sample[SF_MAG])
        except AhrsUpdateError:
            continue
        streaming_results[name].append(quat)


def angle_error(estimated_quats):
    return np.rad2deg((Rotation.from_quat(estimated_quats) * true_orientation.inv()).magnitude())


for name, quats in streaming_results.items():
    plt.plot(angle_error(np.array(quats)), label=name)
plt.xlabel("sample")
plt.ylabel("orientation error [deg]")
plt.legend()
plt.show()

# %%
# Processing recorded data
# ------------------------
#
# `estimate` resets the filter and processes all samples of a DataFrame.
# The result contains the initial orientation as first element, hence there is one orientation more than samples.
madgwick = MadgwickAHRS(beta=0.5, sample_period=sample_period, use_magnetometer=True).estimate(data)
madgwick.orientation_.head()

# %%
# The final orientation matches the last streaming result.
print(np.allclose(madgwick.orientation_.iloc[-1], streaming_results["madgwick"][-1]))
