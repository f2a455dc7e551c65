# src/ledgertest/runtime/block.py

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Sequence

from ledgertest.crypto.keys import PubKey

Json = Dict[str, Any]


def _canon_json(obj: Any) -> str:
    """Canonical JSON encoding. Unknown types are an error, never coerced."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def sha256_hex(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


@dataclass(frozen=True)
class Validator:
    pub_key: PubKey
    voting_power: int = 1

    @property
    def address(self) -> bytes:
        return self.pub_key.address()

    def to_json(self) -> Json:
        return {"address": self.address.hex().upper(), "pub_key": self.pub_key.key, "power": int(self.voting_power)}


@dataclass(frozen=True)
class ValidatorSet:
    """Consensus validator set ordered by power (desc) then address (asc)."""

    validators: tuple[Validator, ...]

    def __post_init__(self) -> None:
        if not self.validators:
            raise ValueError("validator set must not be empty")
        seen: set[bytes] = set()
        for v in self.validators:
            if int(v.voting_power) <= 0:
                raise ValueError(f"validator voting power must be positive; got {v.voting_power}")
            if v.address in seen:
                raise ValueError(f"duplicate validator {v.address.hex().upper()}")
            seen.add(v.address)
        ordered = tuple(sorted(self.validators, key=lambda v: (-int(v.voting_power), v.address)))
        object.__setattr__(self, "validators", ordered)

    @classmethod
    def of(cls, validators: Sequence[Validator]) -> "ValidatorSet":
        return cls(tuple(validators))

    def __len__(self) -> int:
        return len(self.validators)

    def __iter__(self):
        return iter(self.validators)

    def total_voting_power(self) -> int:
        return sum(int(v.voting_power) for v in self.validators)

    def hash(self) -> str:
        return sha256_hex(_canon_json([v.to_json() for v in self.validators]).encode("utf-8"))


@dataclass(frozen=True)
class Header:
    """Minimal block header shared by the app, networks and test chains."""

    chain_id: str
    height: int
    time: datetime
    app_hash: str = ""
    validators_hash: str = ""
    next_validators_hash: str = ""
    last_block_hash: str = ""

    def to_json(self) -> Json:
        return {
            "chain_id": str(self.chain_id),
            "height": int(self.height),
            "time": self.time.isoformat(),
            "app_hash": str(self.app_hash),
            "validators_hash": str(self.validators_hash),
            "next_validators_hash": str(self.next_validators_hash),
            "last_block_hash": str(self.last_block_hash),
        }

    def sign_bytes(self) -> bytes:
        return _canon_json(self.to_json()).encode("utf-8")

    def hash(self) -> str:
        return sha256_hex(self.sign_bytes())

    def with_time(self, t: datetime) -> "Header":
        return replace(self, time=t)


@dataclass(frozen=True)
class SignedHeader:
    header: Header
    validator_set: ValidatorSet
    # validator address (upper hex) -> signature over header.sign_bytes()
    signatures: Dict[str, bytes] = field(default_factory=dict)

    def signed_power(self) -> int:
        msg = self.header.sign_bytes()
        power = 0
        for v in self.validator_set:
            sig = self.signatures.get(v.address.hex().upper())
            if sig is not None and v.pub_key.verify(msg, sig):
                power += int(v.voting_power)
        return power

    def verify(self) -> bool:
        """True if more than 2/3 of the voting power signed the header."""
        if self.header.validators_hash and self.header.validators_hash != self.validator_set.hash():
            return False
        return self.signed_power() * 3 > self.validator_set.total_voting_power() * 2


def header_signatures(header: Header, signers: Dict[str, Any]) -> Dict[str, bytes]:
    msg = header.sign_bytes()
    out: Dict[str, bytes] = {}
    for addr in sorted(signers):
        out[addr] = signers[addr].sign(msg)
    return out


def sign_header(header: Header, validators: ValidatorSet, signers: Mapping[str, Any]) -> SignedHeader:
    return SignedHeader(header=header, validator_set=validators, signatures=header_signatures(header, dict(signers)))


def next_header(prev: Header, *, app_hash: str, time: Optional[datetime] = None) -> Header:
    """Header following `prev`; the validator set does not change."""
    return Header(
        chain_id=prev.chain_id,
        height=int(prev.height) + 1,
        time=time if time is not None else prev.time,
        app_hash=app_hash,
        validators_hash=prev.next_validators_hash,
        next_validators_hash=prev.next_validators_hash,
        last_block_hash=prev.hash(),
    )
