from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single configuration value a client declares as required.

    Attributes:
        env_key (str): The raw key, without the "<TYPE>_<ENGINE>_" prefix the client adds.
        val_type (str): Expected value type: "string", "number", "bool" or "list".
        default (str | int | float | bool | list | None): Fallback value. None marks the value as mandatory.
    """

    env_key: str
    val_type: str
    default: str | int | float | bool | list | None = None
