from __future__ import annotations

from typing import List

from ledgertest.crypto.keys import AccountKey
from ledgertest.ledger.address import AddressCodec


class Keyring:
    """`n` deterministic secp256k1 account keys for funding test networks.

    TEST ONLY. Keys are derived from `<label>:<index>`, so two keyrings with
    the same label hold the same accounts.
    """

    def __init__(self, n: int, *, label: str = "keyring") -> None:
        if int(n) < 0:
            raise ValueError(f"keyring size must be >= 0; got: {n}")
        self._keys: List[AccountKey] = [AccountKey.from_label(f"{label}:{i}") for i in range(int(n))]

    def __len__(self) -> int:
        return len(self._keys)

    def get_key(self, i: int) -> AccountKey:
        return self._keys[i]

    def get_addr(self, i: int) -> bytes:
        return self._keys[i].address()

    def get_all_acc_addrs(self) -> List[bytes]:
        return [k.address() for k in self._keys]

    def get_acc_addr_string(self, i: int, codec: AddressCodec) -> str:
        return codec.bytes_to_string(self.get_addr(i))
