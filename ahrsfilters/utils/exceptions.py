"""A set of custom exceptions."""
from ahrsfilters.utils.consts import STATUS_ACC_NORM_ZERO, STATUS_MAG_NORM_ZERO, STATUS_OK


class ValidationError(Exception):
    """An error indicating that data-object does not comply with the guidelines."""


class AhrsUpdateError(ValueError):
    """Base class for all errors indicating that a sensor sample could not be used for an update.

    The filter state is guaranteed to be unchanged, if this error is raised.
    Callers are expected to discard the sample and continue with the next one.
    """


class AccelerometerNormZeroError(AhrsUpdateError):
    """The accelerometer vector has no length and hence no direction."""

    def __init__(self) -> None:
        super().__init__("Accelerometer norm divided by zero.")


class MagnetometerNormZeroError(AhrsUpdateError):
    """The magnetometer vector has no length and hence no direction."""

    def __init__(self) -> None:
        super().__init__("Magnetometer norm divided by zero.")


def raise_for_status(status: int) -> None:
    """Translate a status code returned by an update kernel into the matching exception."""
    if status == STATUS_OK:
        return
    if status == STATUS_ACC_NORM_ZERO:
        raise AccelerometerNormZeroError()
    if status == STATUS_MAG_NORM_ZERO:
        raise MagnetometerNormZeroError()
    raise ValueError(f"Unknown update status code {status}")
