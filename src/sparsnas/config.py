"""Project-wide configuration constants and config-file loading.

Central place for tuneable parameters shared across modules.
Import individual names where needed.

Example:
    >>> from sparsnas.config import load_config
    >>> cfg = load_config("sparsnas.toml")
    >>> cfg["transport"]
    'udp'
"""

import tomllib

# Receive timeout in seconds; bounds how long the daemon takes to
# notice a shutdown request.
TIMEOUT_S = 0.5


def load_config(path: str) -> dict:
    """Read a TOML config file and validate required keys.

    Common keys: ``device_serial`` (int, label serial of the transmitter),
    ``pulses_per_kwh`` (int, > 0), ``transport`` (str, "udp" or
    "serial", default "udp").

    For udp: ``[udp]`` section with ``port`` (int).
    For serial: ``[serial]`` section with ``port`` (str) and
    ``baudrate`` (int).

    Raises:
        ValueError: If any required key is missing or has the wrong type.
    """
    with open(path, "rb") as f:
        raw = tomllib.load(f)

    transport = raw.get("transport", "udp")
    if not isinstance(transport, str):
        raise ValueError("transport must be str, got %s" % type(transport).__name__)
    if transport not in ("udp", "serial"):
        raise ValueError("transport must be 'udp' or 'serial', got '%s'" % transport)

    _require_int(raw, "device_serial")
    _require_int(raw, "pulses_per_kwh")
    if raw["device_serial"] < 0:
        raise ValueError(
            "device_serial must not be negative, got %d" % raw["device_serial"]
        )
    if raw["pulses_per_kwh"] <= 0:
        raise ValueError(
            "pulses_per_kwh must be positive, got %d" % raw["pulses_per_kwh"]
        )

    result = {
        "transport": transport,
        "device_serial": raw["device_serial"],
        "pulses_per_kwh": raw["pulses_per_kwh"],
    }

    if transport == "udp":
        section = _require_section(raw, "udp")
        _require_int(section, "port", "udp.")
        result["udp_port"] = section["port"]
    else:
        section = _require_section(raw, "serial")
        _require_str(section, "port", "serial.")
        _require_int(section, "baudrate", "serial.")
        result["serial_port"] = section["port"]
        result["baudrate"] = section["baudrate"]

    return result


def _require_section(raw: dict[str, object], name: str) -> dict:
    """Return table *name* from *raw*, which the transport requires."""
    if name not in raw:
        raise ValueError("%s transport requires [%s] section" % (name, name))
    if not isinstance(raw[name], dict):
        raise ValueError("[%s] must be a table" % name)
    return raw[name]


def _require_str(raw: dict[str, object], key: str, prefix: str = "") -> None:
    """Validate that *key* exists in *raw* and is a str."""
    if key not in raw:
        raise ValueError("missing required key: %s%s" % (prefix, key))
    if not isinstance(raw[key], str):
        raise ValueError(
            "%s%s must be str, got %s" % (prefix, key, type(raw[key]).__name__)
        )


def _require_int(raw: dict[str, object], key: str, prefix: str = "") -> None:
    """Validate that *key* exists in *raw* and is an int."""
    if key not in raw:
        raise ValueError("missing required key: %s%s" % (prefix, key))
    # bool is an int subclass; TOML true/false is never a valid number here.
    if not isinstance(raw[key], int) or isinstance(raw[key], bool):
        raise ValueError(
            "%s%s must be int, got %s" % (prefix, key, type(raw[key]).__name__)
        )
