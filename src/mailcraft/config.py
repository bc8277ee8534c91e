"""Configuration for mailcraft.

Site-wide values (site name, site root, default charset) are carried by an
explicit :class:`MailSettings` value handed to the mailer, never read from
process globals. Settings come from the ``mail`` section of a YAML file
(``mailcraft.conf.yml`` by default)::

    mail:
      site_name: Dreamscape
      site_root: https://www.example.org
      default_charset: utf-8
      wrap_width: 75
      strings:
        email.greeting: "Hi [[user]],"

String values may reference environment variables with ``${VAR}`` or
``${VAR:-default}``.
"""

from __future__ import annotations

import codecs
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from box import Box

from mailcraft.exceptions import MailConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

#: Default configuration file looked up in the working directory.
DEFAULT_CONFIG_FILENAME = "mailcraft.conf.yml"

DEFAULT_SITE_NAME = "mailcraft"
DEFAULT_SITE_ROOT = "http://localhost"
DEFAULT_CHARSET = "utf-8"
DEFAULT_WRAP_WIDTH = 75

# Deep defense: hard bounds for the wrap width
HARD_MIN_WRAP_WIDTH = 20
HARD_MAX_WRAP_WIDTH = 998

# Pattern for environment variable substitution: ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([a-zA-Z_][a-zA-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(value: str, source: str | None = None) -> str:
    """Expand environment variables in a string value.

    Args:
        value: String potentially containing ``${VAR}`` patterns.
        source: Source file for error messages.

    Returns:
        String with environment variables expanded.

    Raises:
        MailConfigurationError: If a required variable is not set.

    Examples:
        >>> os.environ["MAILCRAFT_DOC_HOST"] = "example.org"
        >>> _expand_env_vars("https://${MAILCRAFT_DOC_HOST}")
        'https://example.org'
        >>> _expand_env_vars("${MAILCRAFT_MISSING:-fallback}")
        'fallback'
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default_value = match.group(2)

        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        if default_value is not None:
            return default_value

        where = f" (in {source})" if source else ""
        raise MailConfigurationError(f"Environment variable '{var_name}' is not set{where}")

    return _ENV_VAR_PATTERN.sub(replacer, value)


def _expand_env_vars_recursive(data: Any, source: str | None = None) -> Any:
    """Recursively expand environment variables in config data."""
    if isinstance(data, dict):
        return {k: _expand_env_vars_recursive(v, source) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars_recursive(item, source) for item in data]
    if isinstance(data, str):
        return _expand_env_vars(data, source)
    return data


def validate_charset(charset: str) -> str:
    """Validate a charset name and return it lower-cased.

    Args:
        charset: Charset name such as ``utf-8`` or ``ISO-8859-1``.

    Returns:
        The lower-cased charset name.

    Raises:
        MailConfigurationError: If Python has no codec for the name.

    Examples:
        >>> validate_charset("ISO-8859-1")
        'iso-8859-1'
    """
    if not charset or not charset.strip():
        raise MailConfigurationError("Charset cannot be empty")
    try:
        codecs.lookup(charset)
    except LookupError:
        raise MailConfigurationError(f"Unknown charset {charset!r}") from None
    return charset.strip().lower()


@dataclass(frozen=True, slots=True)
class MailSettings:
    """Read-only site configuration used while composing mail.

    Attributes:
        site_name: Short site name substituted into the footer.
        site_root: Site URL substituted into the footer.
        default_charset: Charset used for non-ASCII messages whose request
            does not name one.
        wrap_width: Column width used when a request asks for wrapping.

    Examples:
        >>> settings = MailSettings(site_name="Dreamscape")
        >>> settings.default_charset
        'utf-8'
    """

    site_name: str = DEFAULT_SITE_NAME
    site_root: str = DEFAULT_SITE_ROOT
    default_charset: str = DEFAULT_CHARSET
    wrap_width: int = DEFAULT_WRAP_WIDTH

    def __post_init__(self) -> None:
        """Validate settings values.

        Raises:
            MailConfigurationError: If any value is invalid.
        """
        if not self.site_name:
            raise MailConfigurationError("site_name cannot be empty")
        if not self.site_root:
            raise MailConfigurationError("site_root cannot be empty")
        object.__setattr__(self, "default_charset", validate_charset(self.default_charset))
        if not HARD_MIN_WRAP_WIDTH <= self.wrap_width <= HARD_MAX_WRAP_WIDTH:
            raise MailConfigurationError(
                f"wrap_width must be between {HARD_MIN_WRAP_WIDTH} and {HARD_MAX_WRAP_WIDTH}, got {self.wrap_width}"
            )


def load_config(filename: str | Path | None = None) -> Box:
    """Load a YAML configuration file into a :class:`box.Box`.

    Without ``filename``, ``mailcraft.conf.yml`` in the working directory is
    used when present and an empty configuration otherwise.

    Args:
        filename: Explicit configuration file path.

    Returns:
        Configuration tree with environment variables expanded.

    Raises:
        MailConfigurationError: If an explicit file is missing or the file
            is not a YAML mapping.
    """
    explicit = filename is not None
    path = Path(filename) if filename is not None else Path.cwd() / DEFAULT_CONFIG_FILENAME

    if not path.is_file():
        if explicit:
            raise MailConfigurationError(f"Configuration file not found: {path}")
        log.debug("No %s found in %s, using defaults", DEFAULT_CONFIG_FILENAME, path.parent)
        return Box()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise MailConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MailConfigurationError(f"Configuration root must be a mapping in {path}, got {type(data).__name__}")

    log.debug("Loaded configuration from %s", path)
    return Box(_expand_env_vars_recursive(data, str(path)))


def get_mail_section(config: Mapping[str, Any]) -> dict[str, Any]:
    """Return the ``mail`` section of a configuration tree.

    Raises:
        MailConfigurationError: If the section is not a mapping.
    """
    section = config.get("mail") or {}
    if not isinstance(section, dict):
        raise MailConfigurationError(f"'mail' section must be a mapping, got {type(section).__name__}")
    return dict(section)


def load_settings(
    filename: str | Path | None = None,
    *,
    config: Mapping[str, Any] | None = None,
) -> MailSettings:
    """Build :class:`MailSettings` from a configuration tree or file.

    Args:
        filename: YAML file to read when ``config`` is not given.
        config: Already loaded configuration mapping.

    Returns:
        Validated settings; missing keys take their defaults.

    Raises:
        MailConfigurationError: If values are invalid.

    Examples:
        >>> load_settings(config={"mail": {"site_name": "Dreamscape"}}).site_name
        'Dreamscape'
    """
    if config is None:
        config = load_config(filename)
    section = get_mail_section(config)

    raw_width = section.get("wrap_width", DEFAULT_WRAP_WIDTH)
    try:
        wrap_width = int(raw_width)
    except (TypeError, ValueError):
        raise MailConfigurationError(f"Invalid wrap_width {raw_width!r}") from None

    return MailSettings(
        site_name=str(section.get("site_name", DEFAULT_SITE_NAME)),
        site_root=str(section.get("site_root", DEFAULT_SITE_ROOT)),
        default_charset=str(section.get("default_charset", DEFAULT_CHARSET)),
        wrap_width=wrap_width,
    )


__all__ = [
    "DEFAULT_CHARSET",
    "DEFAULT_CONFIG_FILENAME",
    "DEFAULT_SITE_NAME",
    "DEFAULT_SITE_ROOT",
    "DEFAULT_WRAP_WIDTH",
    "MailSettings",
    "get_mail_section",
    "load_config",
    "load_settings",
    "validate_charset",
]
