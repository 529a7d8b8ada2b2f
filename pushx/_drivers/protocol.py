"""Driver protocol for pushx destination plugins.

This module defines the lifecycle contract every destination driver
implements, the request describing a single run, and the layered settings
machinery shared by the bundled drivers.
"""

import importlib
import os
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, BinaryIO, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from pushx.exceptions import ConfigurationError
from pushx.logging_config import logger
from pushx.tls import TLSOptions

# Prefix for every environment variable read by pushx
DEFAULT_ENV_PREFIX = "PUSHX_"

# Input/output designator meaning stdin (for input) or stdout (for output)
STDIO_SENTINEL = "-"

TRUE_VALUES = ("true", "yes", "1", "on")
FALSE_VALUES = ("false", "no", "0", "off")


def parse_bool(value: str) -> bool:
    """Parse a boolean setting value."""
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"expected one of {TRUE_VALUES + FALSE_VALUES}, got {value!r}")


def parse_int(value: str) -> int:
    return int(value.strip())


def parse_list(value: str) -> List[str]:
    """Parse a comma separated list, dropping empty items."""
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_int_list(value: str) -> List[int]:
    return [int(item) for item in parse_list(value)]


def parse_slots(value: str) -> List[str]:
    """Split positional slots on commas, keeping empty and padded items as written."""
    if value == "":
        return []
    return value.split(",")


def parse_pairs(separator: str) -> Callable[[str], Dict[str, str]]:
    """
    Build a parser for ``key<sep>value,key<sep>value`` strings.

    Items without the separator are skipped.
    """

    def _parse(value: str) -> Dict[str, str]:
        pairs: Dict[str, str] = {}
        for item in parse_list(value):
            if separator not in item:
                continue
            key, val = item.split(separator, 1)
            pairs[key.strip()] = val.strip()
        return pairs

    return _parse


@dataclass(frozen=True)
class Setting:
    """
    One configurable driver field.

    Attributes:
        attr: Attribute set on the driver instance
        flag: Command line flag name without dashes (e.g. "http-url")
        env: Environment variable suffix, appended to the run prefix (e.g. "HTTP_REQUEST_URL")
        help: Help text for the command line
        default: Value used when neither environment nor flags set the field
        parser: Converts a raw string into the field value
        is_bool: Whether the flag is an on/off switch
        secret: Whether the value must never be logged
    """

    attr: str
    flag: str
    env: str
    help: str = ""
    default: Any = None
    parser: Callable[[str], Any] = str
    is_bool: bool = False
    secret: bool = False


def tls_settings(flag_prefix: str, env_prefix: str, label: str) -> Tuple[Setting, ...]:
    """Standard TLS settings for a driver, e.g. ``--redis-enable-tls`` / ``REDIS_ENABLE_TLS``."""
    return (
        Setting(
            "enable_tls",
            f"{flag_prefix}-enable-tls",
            f"{env_prefix}_ENABLE_TLS",
            f"{label} enable TLS",
            default=False,
            parser=parse_bool,
            is_bool=True,
        ),
        Setting(
            "tls_insecure",
            f"{flag_prefix}-tls-insecure",
            f"{env_prefix}_TLS_INSECURE",
            f"{label} skip TLS verification",
            default=False,
            parser=parse_bool,
            is_bool=True,
        ),
        Setting("tls_ca_file", f"{flag_prefix}-tls-ca-file", f"{env_prefix}_TLS_CA_FILE", f"{label} TLS CA file"),
        Setting(
            "tls_cert_file", f"{flag_prefix}-tls-cert-file", f"{env_prefix}_TLS_CERT_FILE", f"{label} TLS cert file"
        ),
        Setting("tls_key_file", f"{flag_prefix}-tls-key-file", f"{env_prefix}_TLS_KEY_FILE", f"{label} TLS key file"),
    )


@dataclass(frozen=True)
class DeliveryRequest:
    """
    Configuration of a single push run.

    Attributes:
        driver_name: Registered name of the destination driver
        input_str: Literal payload; takes precedence over input_file
        input_file: Path to read the payload from, or "-" for stdin
        output_file: Optional secondary output path, or "-" for stdout
        flags: Driver flags supplied on the command line, keyed by flag name
        env_prefix: Prefix for the driver's environment variables
    """

    driver_name: str
    input_str: str = ""
    input_file: str = STDIO_SENTINEL
    output_file: Optional[str] = None
    flags: Mapping[str, Any] = field(default_factory=dict)
    env_prefix: str = DEFAULT_ENV_PREFIX


class Driver(Protocol):
    """
    Protocol defining the lifecycle of a destination driver.

    The orchestrator calls the methods in a fixed order, once each:
    load_flags, load_env, init, push, cleanup. cleanup is only called
    if init returned normally.

    Example:
        class StdoutDriver:
            name = "local"

            def load_env(self, prefix: str) -> None: ...
            def load_flags(self, flags: Mapping[str, Any]) -> None: ...
            def init(self) -> None: ...

            def push(self, stream: BinaryIO) -> None:
                sys.stdout.buffer.write(stream.read())

            def cleanup(self) -> None: ...
    """

    @property
    def name(self) -> str:
        """Registered name of this driver, e.g. "http" or "redis-list"."""
        ...

    def load_env(self, prefix: str) -> None:
        """
        Populate settings from ``<prefix><SUFFIX>`` environment variables.

        Unset variables leave the field untouched.

        Raises:
            ConfigurationError: If a variable holds a malformed value
        """
        ...

    def load_flags(self, flags: Mapping[str, Any]) -> None:
        """
        Populate settings from command line flags, which win over the environment.

        Raises:
            ConfigurationError: If a flag holds a malformed value
        """
        ...

    def init(self) -> None:
        """
        Create the client or session used to deliver the payload.

        Raises:
            ConfigurationError: If required settings are missing
            BackendConnectionError: If the backend cannot be reached
        """
        ...

    def push(self, stream: BinaryIO) -> None:
        """
        Consume the stream and perform exactly one delivery.

        Raises:
            DeliveryError: If the backend rejects the payload or the write fails
        """
        ...

    def cleanup(self) -> None:
        """
        Release whatever init acquired.

        Raises:
            CleanupError: If releasing resources fails
        """
        ...


class BaseDriver:
    """
    Base class implementing layered settings for bundled drivers.

    Subclasses declare ``SETTINGS``; after ``resolve_settings()`` each
    setting is available as an instance attribute. Values are merged in
    precedence order defaults < environment < flags, independently of the
    order in which load_env and load_flags were called.
    """

    name: str = ""
    description: str = ""
    SETTINGS: Tuple[Setting, ...] = ()

    def __init__(self) -> None:
        self._env_layer: Dict[str, Any] = {}
        self._flag_layer: Dict[str, Any] = {}
        self._env_prefix = DEFAULT_ENV_PREFIX
        for setting in self.SETTINGS:
            setattr(self, setting.attr, setting.default)

    @staticmethod
    def _display(setting: Setting, raw: Any) -> str:
        return "***" if setting.secret else str(raw)

    def _parse(self, setting: Setting, raw: Any, source: str) -> Any:
        if not isinstance(raw, str):
            return raw
        try:
            return setting.parser(raw)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {source}: {e}")

    def load_env(self, prefix: str) -> None:
        logger.debug(f"[{self.name}] Loading environment (prefix={prefix})")
        self._env_prefix = prefix
        for setting in self.SETTINGS:
            env_name = f"{prefix}{setting.env}"
            raw = os.getenv(env_name)
            if raw is None or raw == "":
                continue
            self._env_layer[setting.attr] = self._parse(setting, raw, env_name)
            logger.debug(f"[{self.name}] {env_name}={self._display(setting, raw)}")

    def load_flags(self, flags: Mapping[str, Any]) -> None:
        logger.debug(f"[{self.name}] Loading flags")
        for setting in self.SETTINGS:
            if setting.flag not in flags or flags[setting.flag] is None:
                continue
            self._flag_layer[setting.attr] = self._parse(setting, flags[setting.flag], f"--{setting.flag}")
            logger.debug(f"[{self.name}] --{setting.flag}={self._display(setting, flags[setting.flag])}")

    def resolve_settings(self) -> Dict[str, Any]:
        """Merge the layers and assign the result to instance attributes."""
        resolved: Dict[str, Any] = {}
        for setting in self.SETTINGS:
            value = setting.default
            if setting.attr in self._env_layer:
                value = self._env_layer[setting.attr]
            if setting.attr in self._flag_layer:
                value = self._flag_layer[setting.attr]
            resolved[setting.attr] = value
            setattr(self, setting.attr, value)
        return resolved

    def require(self, *attrs: str) -> None:
        """
        Raise ConfigurationError naming the first unset required setting.

        Raises:
            ConfigurationError: If any attribute is empty
        """
        by_attr = {setting.attr: setting for setting in self.SETTINGS}
        for attr in attrs:
            if getattr(self, attr, None) in (None, ""):
                setting = by_attr.get(attr)
                if setting:
                    raise ConfigurationError(
                        f"{self.name}: --{setting.flag} (or {self._env_prefix}{setting.env}) is required"
                    )
                raise ConfigurationError(f"{self.name}: {attr} is required")

    def tls_options(self) -> TLSOptions:
        """TLS options built from the standard TLS settings."""
        return TLSOptions(
            enabled=bool(getattr(self, "enable_tls", False)),
            insecure=bool(getattr(self, "tls_insecure", False)),
            ca_file=getattr(self, "tls_ca_file", None) or None,
            cert_file=getattr(self, "tls_cert_file", None) or None,
            key_file=getattr(self, "tls_key_file", None) or None,
        )

    def init(self) -> None:
        self.resolve_settings()

    def push(self, stream: BinaryIO) -> None:
        raise NotImplementedError

    def cleanup(self) -> None:
        logger.debug(f"[{self.name}] Nothing to clean up")


def import_client(module: str, extra: str, driver: str) -> ModuleType:
    """
    Import a backend client library on first use.

    Raises:
        ConfigurationError: If the library is not installed, naming the extra that provides it
    """
    try:
        return importlib.import_module(module)
    except ImportError as e:
        raise ConfigurationError(f"{driver}: {module} is not installed; install with 'pip install pushx[{extra}]' ({e})")
