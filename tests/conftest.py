import random

import numpy as np
import pandas as pd
import pytest

from ahrsfilters.utils.consts import SF_ACC, SF_GYR, SF_MAG


@pytest.fixture(autouse=True)
def reset_random_seed():
    np.random.seed(10)
    random.seed(10)


@pytest.fixture()
def resting_imu_data() -> pd.DataFrame:
    """A sensor lying flat with a slow rotation around the vertical axis and a tilted magnetic field."""
    n_samples = 20
    data = pd.DataFrame(np.zeros((n_samples, 9)), columns=[*SF_ACC, *SF_GYR, *SF_MAG])
    data["acc_z"] = 9.81
    data["gyr_z"] = 0.1
    data["mag_x"] = 20.0
    data["mag_z"] = -40.0
    return data

