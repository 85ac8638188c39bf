"""Loaders turning URLs and settings files into validated move settings.

What:
  Build :class:`~imapmove.config.schema.MoveSettings` from the three inputs the
  command line accepts: a pair of IMAP URLs, a properties file, or a YAML file.

Why:
  Endpoint details arrive as free text typed by an operator. Parsing them in
  one place enforces the same defaults (protocol, port, mailbox, identity) and
  the same error type whatever the input format.

How:
  URLs are split with :mod:`urllib.parse` and percent-decoded. Properties files
  (``source.*`` / ``destination.*`` keys) are read with :mod:`configparser`
  under a synthetic section. YAML files go through ``yaml.safe_load``. Every
  payload is validated by the pydantic models; any failure becomes
  :class:`ConfigLoadError` naming the offending input.

Interfaces:
  :class:`ConfigLoadError`, :func:`parse_imap_url`, :func:`settings_from_urls`,
  :func:`load_properties`, :func:`load_yaml`, :func:`load_settings`,
  :data:`CONFIG_ENV`.

Invariants:
  - Passwords never appear in error messages; URLs are reported redacted.
"""
from __future__ import annotations

import configparser
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import unquote, urlsplit

import yaml
from pydantic import ValidationError

from .schema import DEFAULT_PORTS, EndpointSettings, MoveSettings


CONFIG_ENV = "IMAPMOVE_CONFIG_PATH"
_YAML_SUFFIXES = {".yaml", ".yml"}
_SECTION = "properties"
_ESCAPE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)")
_JAVA_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


class ConfigLoadError(Exception):
    """Settings could not be read, parsed, or validated.

    What:
      Represent operator input mistakes, as opposed to mailbox failures.

    Why:
      The entry point reports both as exit status 1 but words them
      differently; a dedicated type lets it tell them apart.
    """


def parse_imap_url(url: str) -> EndpointSettings:
    """Parse ``imap[s]://[user[:password]@]host[:port][/mailbox]``.

    What:
      Convert an IMAP URL into :class:`EndpointSettings`.

    Why:
      URLs are the quickest way to name an endpoint on the command line, and
      percent-encoding lets a login containing ``@`` double as the identity.

    How:
      :func:`urllib.parse.urlsplit` isolates the parts; user, password, and
      mailbox are percent-decoded; missing values fall back to the schema
      defaults.

    Args:
      url: IMAP URL string.

    Returns:
      Validated endpoint settings.

    Raises:
      ConfigLoadError: Unsupported scheme or malformed port.
    """

    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme not in DEFAULT_PORTS:
        raise ConfigLoadError(f"Unsupported URL scheme {parts.scheme!r}; expected imap or imaps")
    try:
        port = parts.port
    except ValueError as exc:
        raise ConfigLoadError(f"Invalid port in IMAP URL for host {parts.hostname!r}") from exc
    payload: Dict[str, Any] = {
        "protocol": scheme,
        "host": parts.hostname,
        "port": port,
        "username": _decoded(parts.username),
        "password": _decoded(parts.password),
        "mailbox": unquote(parts.path.lstrip("/")),
    }
    return _validate_endpoint(payload, source=f"{scheme}://{parts.hostname}")


def settings_from_urls(
    source_url: str,
    destination_url: str,
    subject_prefix: Optional[str] = "",
    *,
    expunge: bool = True,
) -> MoveSettings:
    """Build move settings from a source and a destination URL."""

    return MoveSettings(
        source=parse_imap_url(source_url),
        destination=parse_imap_url(destination_url),
        subject_prefix=subject_prefix,
        expunge=expunge,
    )


def load_properties(path: Path) -> MoveSettings:
    """Load move settings from a Java-style properties file.

    What:
      Read ``source.*`` and ``destination.*`` keys (``host``, ``port``,
      ``secure``, ``username``, ``password``, ``email``, ``mailbox``,
      ``debug``) plus optional ``subject.prefix`` and ``expunge``.

    Why:
      Credentials for both accounts fit in one file that can be kept out of
      the shell history.

    How:
      Prepend a section header so :class:`configparser.ConfigParser` accepts the
      flat ``key=value`` layout, keep key case, disable interpolation (passwords
      may contain ``%``), and map each prefix onto :class:`EndpointSettings`.
      Values are then unescaped the way Java's ``Properties.load`` does
      (``\\\\``, ``\\:``, ``\\=``, ``\\t``, ``\\n``, ``\\uXXXX``; any other
      escaped character stands for itself). Boolean keys are true only for
      ``true`` in any case. Unknown keys are ignored.

      Layout differences from ``Properties.load``: keys must be separated
      from values by ``=`` or ``:`` (a bare space is a parse error),
      indented lines continue the previous value instead of starting a new
      key, and a trailing backslash does not join lines.

    Args:
      path: Properties file location.

    Returns:
      Validated move settings.

    Raises:
      ConfigLoadError: The file is missing, unreadable, or invalid.
    """

    text = _read(path)
    parser = configparser.ConfigParser(
        interpolation=None,
        delimiters=("=", ":"),
        comment_prefixes=("#", "!"),
        strict=False,
    )
    parser.optionxform = str  # type: ignore[assignment]
    try:
        parser.read_string(f"[{_SECTION}]\n{text}", source=str(path))
    except configparser.Error as exc:
        raise ConfigLoadError(f"Invalid properties file {path}: {exc}") from exc
    values = {key: _unescape(value) for key, value in parser[_SECTION].items()}
    payload = {
        "source": _endpoint_payload(values, "source.", path),
        "destination": _endpoint_payload(values, "destination.", path),
        "subject_prefix": values.get("subject.prefix", ""),
    }
    if "expunge" in values:
        payload["expunge"] = _flag(values["expunge"])
    return _validate_settings(payload, path)


def load_yaml(path: Path) -> MoveSettings:
    """Load move settings from a YAML mapping.

    The document mirrors :class:`MoveSettings`: ``source`` and ``destination``
    mappings using the :class:`EndpointSettings` field names, plus optional
    ``subject_prefix`` and ``expunge``.

    Raises:
      ConfigLoadError: The file is missing, not YAML, not a mapping, or invalid.
    """

    text = _read(path)
    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigLoadError(f"{path} must contain a mapping at the top-level")
    return _validate_settings(payload, path)


def load_settings(
    path: Optional[Path | str] = None,
    *,
    subject_prefix: Optional[str] = None,
    expunge: Optional[bool] = None,
) -> MoveSettings:
    """Resolve and load a settings file, applying command-line overrides.

    What:
      Pick the file (explicit path, else ``IMAPMOVE_CONFIG_PATH``), dispatch on
      its suffix, and apply the overrides.

    Args:
      path: Settings file; ``None`` consults the environment.
      subject_prefix: Overrides the file's prefix when not ``None``.
      expunge: Overrides the file's expunge flag when not ``None``.

    Returns:
      Validated move settings.

    Raises:
      ConfigLoadError: No file was named, or loading it failed.
    """

    if path is None:
        env_path = os.environ.get(CONFIG_ENV)
        if not env_path:
            raise ConfigLoadError(f"No settings file given and {CONFIG_ENV} is not set")
        path = env_path
    resolved = Path(path).expanduser()
    if resolved.suffix.lower() in _YAML_SUFFIXES:
        settings = load_yaml(resolved)
    else:
        settings = load_properties(resolved)
    updates: Dict[str, Any] = {}
    if subject_prefix is not None:
        updates["subject_prefix"] = subject_prefix
    if expunge is not None:
        updates["expunge"] = expunge
    return settings.model_copy(update=updates) if updates else settings


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigLoadError(f"Settings file missing: {path}") from exc
    except OSError as exc:  # pragma: no cover - filesystem surface
        raise ConfigLoadError(f"Unable to read settings file {path}: {exc}") from exc


def _endpoint_payload(values: Dict[str, str], prefix: str, path: Path) -> Dict[str, Any]:
    raw_port = values.get(prefix + "port")
    port: Optional[int] = None
    if raw_port is not None and raw_port.strip():
        try:
            port = int(raw_port)
        except ValueError as exc:
            raise ConfigLoadError(f"Invalid {prefix}port {raw_port!r} in {path}") from exc
    return {
        "protocol": "imaps" if _flag(values.get(prefix + "secure")) else "imap",
        "host": values.get(prefix + "host"),
        "port": port,
        "username": values.get(prefix + "username"),
        "password": values.get(prefix + "password"),
        "email": values.get(prefix + "email"),
        "mailbox": values.get(prefix + "mailbox"),
        "debug": _flag(values.get(prefix + "debug")),
    }


def _unescape(value: str) -> str:
    return _ESCAPE.sub(_escaped_char, value)


def _escaped_char(match: "re.Match[str]") -> str:
    token = match.group(1)
    if token.startswith("u") and len(token) == 5:
        return chr(int(token[1:], 16))
    return _JAVA_ESCAPES.get(token, token)


def _flag(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() == "true"


def _decoded(value: Optional[str]) -> Optional[str]:
    return None if value is None else unquote(value)


def _validate_endpoint(payload: Dict[str, Any], *, source: str) -> EndpointSettings:
    try:
        return EndpointSettings.model_validate(payload)
    except ValidationError as exc:
        raise ConfigLoadError(f"Invalid endpoint {source}: {exc}") from exc


def _validate_settings(payload: Dict[str, Any], path: Path) -> MoveSettings:
    try:
        return MoveSettings.model_validate(payload)
    except ValidationError as exc:
        raise ConfigLoadError(f"Invalid settings in {path}: {exc}") from exc
