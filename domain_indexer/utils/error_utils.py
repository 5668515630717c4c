"""Common error and validation utility functions
"""

from typing import Union


def check_for_missing_env_vars(env_vars: dict):
    """Checks whether any required environment values are undefined.

    :param env_vars: The dictionary of environment variables.
    """
    # Check for missing environment variables since these are unrecoverable.
    missing_keys = [k for k, v in env_vars.items() if v is None]
    if missing_keys:
        missing_keys_str = ", ".join(missing_keys)
        raise EnvironmentError(
            f"Missing required environment variables: {missing_keys_str}"
        )


def parse_int_env_var(var_name: str, value: Union[str, None]) -> Union[int, None]:
    """Parses an optional integer environment value.

    :param var_name: The environment variable name, used in the error message.
    :param value: The raw value, or None if the variable is not set.
    :return: The parsed integer or None.
    """
    if value is None or value.strip() == "":
        return None
    try:
        return int(value.strip(), 0)
    except ValueError as e:
        raise ValueError(
            f"Environment variable {var_name} must be an integer, got {value!r}"
        ) from e


def parse_bool_env_var(value: Union[str, None], default: bool = False) -> bool:
    """Parses an optional boolean environment value.

    :param value: The raw value, or None if the variable is not set.
    :param default: The value to return if the variable is not set.
    :return: The parsed boolean.
    """
    if value is None:
        return default
    return value.lower() in ["true", "1", "t", "y", "yes"]
