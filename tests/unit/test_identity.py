"""Tests for :mod:`imapmove.core.identity`."""

from imapmove.core.identity import AddressIdentity


def test_explicit_address_wins():
    identity = AddressIdentity.resolve("user@example.org", "mail.example.org", "alias@example.net")
    assert identity.address == "alias@example.net"


def test_username_with_at_sign_is_the_address():
    identity = AddressIdentity.resolve("user@example.org", "mail.example.org")
    assert identity.address == "user@example.org"


def test_plain_username_is_joined_with_host():
    identity = AddressIdentity.resolve("srcuser", "localhost")
    assert identity.address == "srcuser@localhost"
    assert str(identity) == "srcuser@localhost"


def test_match_is_exact_and_case_sensitive():
    identity = AddressIdentity("dstuser@localhost")
    assert identity.matches("dstuser@localhost")
    assert not identity.matches("DSTUSER@localhost")
    assert not identity.matches("Destination User <dstuser@localhost>")
    assert not identity.matches(None)
