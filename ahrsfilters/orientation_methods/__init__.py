"""Methods to estimate the orientation of an IMU sample by sample."""

from ahrsfilters.orientation_methods._madgwick import MadgwickAHRS
from ahrsfilters.orientation_methods._mahony import MahonyAHRS

__all__ = ["MadgwickAHRS", "MahonyAHRS"]
