"""IP address conversion to the binary form stored in the database."""

from __future__ import annotations

import ipaddress

# Width of the address byte columns; IPv4 values are right-padded to it
ADDRESS_BYTES_WIDTH = 16

_BYTES_PER_FAMILY = {4: 4, 6: 16}


class AddressParseError(ValueError):
    """Text is not a valid IPv4 or IPv6 address."""


def parse_address(text: str) -> tuple[int, bytes]:
    """Convert a textual IPv4/IPv6 address to its family and packed bytes.

    Args:
        text: Address literal, e.g. ``"1.0.0.0"`` or ``"2001:db8::"``.

    Returns:
        ``(4, 4 bytes)`` for IPv4 or ``(6, 16 bytes)`` for IPv6, in network order.

    Raises:
        AddressParseError: If the text is not a valid address.
    """
    if not isinstance(text, str):
        raise AddressParseError(f"Failed to parse IP address: {text!r}")

    try:
        address = ipaddress.ip_address(text)
    except ValueError as e:
        raise AddressParseError(f"Failed to parse IP address: {text!r}") from e

    return address.version, address.packed


def expected_length(family: int) -> int:
    """Number of packed bytes for an address family."""
    try:
        return _BYTES_PER_FAMILY[family]
    except KeyError:
        raise ValueError(f"Unknown address family: {family}") from None


def pad_address(packed: bytes) -> bytes:
    """Right-pad packed address bytes to the fixed column width."""
    if len(packed) > ADDRESS_BYTES_WIDTH:
        raise ValueError(f"Address is longer than {ADDRESS_BYTES_WIDTH} bytes")
    return packed.ljust(ADDRESS_BYTES_WIDTH, b"\x00")
