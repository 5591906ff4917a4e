"""Parsing of yes/no style command-line flags."""

_TRUE = {"yes", "y", "1", "true"}
_FALSE = {"no", "n", "0", "false"}


def parse_flag(value: str | bool | int) -> bool:
    """
    Parse a yes/no/1/0 flag value.

    Raises:
        ValueError: If the value is not a recognised form
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        raise ValueError(f"Invalid flag value: {value!r} (expected yes/no/1/0)")

    normalized = str(value).strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    raise ValueError(f"Invalid flag value: {value!r} (expected yes/no/1/0)")
