from __future__ import annotations

"""Bech32 address prefixes and codecs.

Prefixes are plain values passed to whoever builds a chain. Two chains built
with different prefixes in the same process never observe each other's
configuration.
"""

from dataclasses import dataclass

from bech32 import bech32_decode, bech32_encode, convertbits

from ledgertest.crypto.keys import address_hash
from ledgertest.ledger.constants import APP_BECH32_PREFIX, DEFAULT_BECH32_PREFIX
from ledgertest.runtime.errors import AddressCodecError

# Standard bech32 string limit, separator and checksum included.
MAX_BECH32_LEN = 90


@dataclass(frozen=True)
class AddressPrefixes:
    account_addr: str
    account_pub: str
    validator_addr: str
    validator_pub: str
    consensus_addr: str
    consensus_pub: str

    @classmethod
    def from_main(cls, prefix: str) -> "AddressPrefixes":
        p = str(prefix or "").strip()
        if not p:
            raise ValueError("bech32 main prefix must be a non-empty string")
        return cls(
            account_addr=p,
            account_pub=p + "pub",
            validator_addr=p + "valoper",
            validator_pub=p + "valoperpub",
            consensus_addr=p + "valcons",
            consensus_pub=p + "valconspub",
        )


APP_PREFIXES = AddressPrefixes.from_main(APP_BECH32_PREFIX)
DEFAULT_PREFIXES = AddressPrefixes.from_main(DEFAULT_BECH32_PREFIX)


class AddressCodec:
    """Converts raw address bytes to and from bech32 strings for one prefix."""

    def __init__(self, prefix: str) -> None:
        self.prefix = str(prefix or "")

    def __repr__(self) -> str:
        return f"AddressCodec({self.prefix!r})"

    def bytes_to_string(self, bz: bytes) -> str:
        if not self.prefix.strip():
            raise AddressCodecError("empty_prefix")
        if not bz:
            raise AddressCodecError("empty_address")
        encoded_len = len(self.prefix) + 1 + (len(bz) * 8 + 4) // 5 + 6
        if encoded_len > MAX_BECH32_LEN:
            raise AddressCodecError("address_too_long", {"len": len(bz), "encoded_len": encoded_len})
        data = convertbits(list(bz), 8, 5, True)
        out = bech32_encode(self.prefix, data) if data is not None else None
        if not out:
            raise AddressCodecError("bech32_encode_failed", {"prefix": self.prefix})
        return out

    def string_to_bytes(self, text: str) -> bytes:
        s = str(text or "").strip()
        if not s:
            raise AddressCodecError("empty_address")
        hrp, data = bech32_decode(s)
        if hrp is None or data is None:
            raise AddressCodecError("bech32_decode_failed", {"address": s})
        if hrp != self.prefix:
            raise AddressCodecError("prefix_mismatch", {"expected": self.prefix, "got": hrp})
        raw = convertbits(data, 5, 8, False)
        if raw is None or not raw:
            raise AddressCodecError("bech32_decode_failed", {"address": s})
        return bytes(raw)


def module_address(name: str) -> bytes:
    """Address of a module-owned account (e.g. the bonded pool)."""
    return address_hash(str(name).encode("utf-8"))


def account_codec(prefixes: AddressPrefixes) -> AddressCodec:
    return AddressCodec(prefixes.account_addr)


def validator_codec(prefixes: AddressPrefixes) -> AddressCodec:
    return AddressCodec(prefixes.validator_addr)


def consensus_codec(prefixes: AddressPrefixes) -> AddressCodec:
    return AddressCodec(prefixes.consensus_addr)
