"""Common constants used in the library."""

#: The default names of the Gyroscope columns in the sensor frame
SF_GYR = ["gyr_x", "gyr_y", "gyr_z"]
#: The default names of the Accelerometer columns in the sensor frame
SF_ACC = ["acc_x", "acc_y", "acc_z"]
#: The default names of the Magnetometer columns in the sensor frame
SF_MAG = ["mag_x", "mag_y", "mag_z"]
#: The default names of all columns in the sensor frame
SF_COLS = [*SF_ACC, *SF_GYR, *SF_MAG]

#: The default names of the Orientation columns in the global frame
GF_ORI = ["q_x", "q_y", "q_z", "q_w"]
#: The index name of orientation lists
GF_INDEX = "sample"

#: Default time between two samples in seconds
DEFAULT_SAMPLE_PERIOD = 1.0 / 256.0
#: Default correction gain of the gradient descent filter
DEFAULT_BETA = 0.1
#: Default value added to the norm of the gradient step before it is normalized
DEFAULT_GRADIENT_STABILIZER = 1e-9
#: Default proportional gain of the complementary filter
DEFAULT_KP = 0.5
#: Default integral gain of the complementary filter
DEFAULT_KI = 0.0

#: Status codes returned by the numba update kernels
STATUS_OK = 0
STATUS_ACC_NORM_ZERO = 1
STATUS_MAG_NORM_ZERO = 2
