"""A couple of helper functions that ease the use of the typical sensor data formats."""
from typing import List, Optional

import pandas as pd

from ahrsfilters.utils.consts import GF_INDEX, GF_ORI, SF_ACC, SF_GYR, SF_MAG
from ahrsfilters.utils.exceptions import ValidationError

SingleSensorData = pd.DataFrame
SingleSensorOrientationList = pd.DataFrame


def _get_expected_data_cols(check_acc: bool = True, check_gyr: bool = True, check_mag: bool = False) -> List[str]:
    expected_cols = []
    if check_acc is True:
        expected_cols.extend(SF_ACC)
    if check_gyr is True:
        expected_cols.extend(SF_GYR)
    if check_mag is True:
        expected_cols.extend(SF_MAG)
    return expected_cols


def _assert_is_dtype(obj, dtype: type) -> None:
    """Check if an object has a specific dtype."""
    if not isinstance(obj, dtype):
        raise ValidationError(f"The dataobject is expected to be one of ({dtype},). But it is a {type(obj)}")


def _assert_has_columns(df: pd.DataFrame, columns: List[str]) -> None:
    """Check if the dataframe has at least all columns."""
    if not all(v in df.columns for v in columns):
        raise ValidationError(
            f"The dataframe is expected to have columns: {columns}. "
            f"Instead it has the following columns: {list(df.columns)}"
        )


def is_single_sensor_data(
    data: SingleSensorData,
    check_acc: bool = True,
    check_gyr: bool = True,
    check_mag: bool = False,
    raise_exception: bool = False,
) -> Optional[bool]:
    """Check if an object is valid single sensor data.

    Valid single sensor data is:

    - a :class:`pandas.DataFrame`
    - has only a single level of column indices that correspond to the sensor axis that are available.
    - contains the columns listed in :obj:`SF_ACC <ahrsfilters.utils.consts.SF_ACC>`,
      :obj:`SF_GYR <ahrsfilters.utils.consts.SF_GYR>` and :obj:`SF_MAG <ahrsfilters.utils.consts.SF_MAG>`, depending
      on what is checked.

    Parameters
    ----------
    data
        Object that should be checked
    check_acc
        If the existence of the acc columns should be checked
    check_gyr
        If the existence of the gyr columns should be checked
    check_mag
        If the existence of the mag columns should be checked
    raise_exception
        If True an exception is raised if the object does not pass the validation.
        If False, the function will return simply True or False.

    """
    try:
        _assert_is_dtype(data, pd.DataFrame)
        if isinstance(data.columns, pd.MultiIndex):
            raise ValidationError(
                "The dataframe is expected to have a single level of columns. "
                f"But it has a MultiIndex with {data.columns.nlevels} levels."
            )
        _assert_has_columns(data, _get_expected_data_cols(check_acc=check_acc, check_gyr=check_gyr, check_mag=check_mag))
    except ValidationError as e:
        if raise_exception is True:
            raise ValidationError(
                "The passed object does not seem to be SingleSensorData. "
                f"The validation failed with the following error:\n\n{str(e)}"
            ) from e
        return False
    return True


def is_single_sensor_orientation_list(orientation_list: SingleSensorOrientationList) -> bool:
    """Check if an input is a single-sensor orientation list.

    A valid orientation list:

    - Is a pandas DataFrame with at least the following columns: `["q_x", "q_y", "q_z", "q_w"]`
    - Has an index named `sample`

    """
    if not isinstance(orientation_list, pd.DataFrame):
        return False
    if orientation_list.index.name != GF_INDEX:
        return False
    return all(v in orientation_list.columns for v in GF_ORI)
