"""Configuration package: endpoint models and settings loaders.

What:
  Re-export the pydantic models and loader helpers the entry point uses to
  turn command-line input into :class:`MoveSettings`.

Interfaces:
  - EndpointSettings / MoveSettings: validated settings models.
  - parse_imap_url / settings_from_urls: URL based settings.
  - load_settings / load_properties / load_yaml: file based settings.
  - ConfigLoadError: raised for every invalid input.
"""

from .loader import (
    CONFIG_ENV,
    ConfigLoadError,
    load_properties,
    load_settings,
    load_yaml,
    parse_imap_url,
    settings_from_urls,
)
from .schema import EndpointSettings, MoveSettings

__all__ = [
    "CONFIG_ENV",
    "ConfigLoadError",
    "EndpointSettings",
    "MoveSettings",
    "load_properties",
    "load_settings",
    "load_yaml",
    "parse_imap_url",
    "settings_from_urls",
]
