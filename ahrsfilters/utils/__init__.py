"""A set of util functions that ease handling of sensor data and quaternions."""
