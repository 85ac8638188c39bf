"""Pydantic models describing mailbox endpoints and move settings."""
from __future__ import annotations

from typing import Any, Dict, Literal, Optional
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ..core.identity import AddressIdentity


DEFAULT_MAILBOX = "INBOX"
DEFAULT_HOST = "localhost"
DEFAULT_PORTS: Dict[str, int] = {"imap": 143, "imaps": 993}


class EndpointSettings(BaseModel):
    """Connection parameters and identity of one mailbox endpoint."""

    model_config = ConfigDict(extra="forbid")

    protocol: Literal["imap", "imaps"] = "imap"
    host: str = DEFAULT_HOST
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None
    mailbox: str = DEFAULT_MAILBOX
    email: Optional[str] = None
    debug: bool = False

    @field_validator("protocol", mode="before")
    @classmethod
    def _default_protocol(cls, value: Any) -> Any:
        if value is None or value == "":
            return "imap"
        return value.lower() if isinstance(value, str) else value

    @field_validator("host", mode="before")
    @classmethod
    def _default_host(cls, value: Any) -> Any:
        return value or DEFAULT_HOST

    @field_validator("mailbox", mode="before")
    @classmethod
    def _default_mailbox(cls, value: Any) -> Any:
        return value or DEFAULT_MAILBOX

    @model_validator(mode="after")
    def _default_port(self) -> "EndpointSettings":
        if self.port is None or self.port <= 0:
            self.port = DEFAULT_PORTS[self.protocol]
        return self

    @property
    def secure(self) -> bool:
        return self.protocol == "imaps"

    @property
    def identity(self) -> AddressIdentity:
        """Address this endpoint answers to (see :meth:`AddressIdentity.resolve`)."""

        return AddressIdentity.resolve(self.username, self.host, self.email)

    @property
    def url(self) -> str:
        """Canonical IMAP URL with percent-encoded credentials."""

        return self._render_url(self.password)

    @property
    def redacted_url(self) -> str:
        """Same as :attr:`url` with the password masked, for logs."""

        return self._render_url(None if self.password is None else "***")

    def _render_url(self, password: Optional[str]) -> str:
        userinfo = ""
        if self.username is not None:
            userinfo = quote(self.username, safe="")
            if password is not None:
                userinfo += ":" + quote(password, safe="*")
            userinfo += "@"
        mailbox = quote(self.mailbox, safe="/")
        return f"{self.protocol}://{userinfo}{self.host}:{self.port}/{mailbox}"


class MoveSettings(BaseModel):
    """Everything one move run needs: both endpoints and the rewrite options."""

    model_config = ConfigDict(extra="forbid")

    source: EndpointSettings
    destination: EndpointSettings
    subject_prefix: str = ""
    expunge: bool = True

    @field_validator("subject_prefix", mode="before")
    @classmethod
    def _empty_prefix(cls, value: Any) -> Any:
        return "" if value is None else value
