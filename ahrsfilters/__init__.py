"""Orientation estimation (AHRS) filters for streaming IMU data."""

from ahrsfilters.base import AhrsFilter
from ahrsfilters.orientation_methods import MadgwickAHRS, MahonyAHRS
from ahrsfilters.utils.exceptions import (
    AccelerometerNormZeroError,
    AhrsUpdateError,
    MagnetometerNormZeroError,
    ValidationError,
)

__all__ = [
    "AhrsFilter",
    "MadgwickAHRS",
    "MahonyAHRS",
    "AhrsUpdateError",
    "AccelerometerNormZeroError",
    "MagnetometerNormZeroError",
    "ValidationError",
]
__version__ = "0.1.0"
