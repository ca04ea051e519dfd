"""Central configuration helper for the knowledge base AI bridge."""

import logging
import os


class HelperConfig:
    """Central configuration helper. Reads all settings from environment variables.

    Values passed in ``overrides`` take precedence over the environment. This is
    how tests and embedded callers configure the bridge without touching os.environ.
    """

    def __init__(self, logger: logging.Logger, overrides: dict[str, str] | None = None) -> None:
        self._logger = logger
        self._overrides = {k.upper(): str(v) for k, v in (overrides or {}).items()}

    def _read_raw(self, key: str) -> str | None:
        """Read the raw value for a key, overrides first.

        Args:
            key (str): Upper-cased configuration key.

        Returns:
            str | None: The raw value, or None if unset or empty.
        """
        if key in self._overrides:
            return self._overrides[key] or None
        return os.getenv(key) or None  # empty string → None

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string configuration value.

        Args:
            key (str): Configuration key (case-insensitive).
            default (str | None): Fallback value if the key is not set.

        Returns:
            str: The resolved value.

        Raises:
            ValueError: If the key is not set and no default is provided.
        """
        key = key.upper()
        val = self._read_raw(key)
        if val is None and default is None:
            raise ValueError(f"Environment variable '{key}' is not set.")
        return val.strip() if val is not None else default

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a numeric configuration value.

        Args:
            key (str): Configuration key (case-insensitive).
            default (float | int | None): Fallback value if the key is not set.

        Returns:
            float | int: The resolved numeric value.

        Raises:
            ValueError: If the key is not set and no default is provided.
            ValueError: If the value cannot be parsed as a number.
        """
        key = key.upper()
        raw = self._read_raw(key)
        if raw is None:
            if default is None:
                raise ValueError(f"Environment variable '{key}' is not set.")
            return default
        try:
            return int(raw) if "." not in raw else float(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key}' is not a valid number: '{raw}'.")

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a boolean configuration value.

        Args:
            key (str): Configuration key (case-insensitive).
            default (bool | None): Fallback value if the key is not set.

        Returns:
            bool: The resolved boolean value.

        Raises:
            ValueError: If the key is not set and no default is provided.
        """
        key = key.upper()
        raw = self._read_raw(key)
        if raw is None:
            if default is None:
                raise ValueError(f"Environment variable '{key}' is not set.")
            return default
        return raw.strip().lower() in ("true", "1", "yes")

    def get_list_val(self, key: str, default: list[str] | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a list configuration value in the form "[elem1,elem2,...]".

        Args:
            key (str): Configuration key (case-insensitive).
            default (list[str] | None): Fallback value if the key is not set.
            separator (str): The delimiter to split the string into a list.
            element_type (type): The type to which each element should be cast.

        Returns:
            list: The resolved list of elements.

        Raises:
            ValueError: If the key is not set and no default is provided, or the format is invalid.
        """
        raw_val = self._read_raw(key.upper())
        if raw_val is None:
            if default is None:
                raise ValueError(f"Environment variable '{key.upper()}' is not set.")
            return default
        raw_val = raw_val.strip()
        if not raw_val.startswith("[") or not raw_val.endswith("]"):
            raise ValueError(f"Environment variable '{key.upper()}' must be in the format '[elem1{separator}elem2{separator}...]'. Got: '{raw_val}'")
        elements = [v.strip() for v in raw_val[1:-1].split(separator) if v.strip()]
        try:
            return [element_type(elem) for elem in elements]
        except ValueError as e:
            raise ValueError(f"Environment variable '{key.upper()}' contains invalid elements: {e}. Type set to {element_type.__name__}. Got: '{raw_val}'")

    def get_logger(self) -> logging.Logger:
        """Return the application logger.

        Returns:
            logging.Logger: The configured logger instance.
        """
        return self._logger
