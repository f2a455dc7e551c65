from __future__ import annotations

"""Example-chain constants used by the test harness.

Amounts are integers in the smallest unit of each denom.
"""

from datetime import datetime, timedelta, timezone

# Chain identity
EXAMPLE_CHAIN_ID: str = "ledgertest_9000-1"
CHAIN_ID_PREFIX: str = "ledgertest_9000-"
CHAIN_ID_SUFFIX: str = ""
DUMMY_CHAIN_ID_PREFIX: str = "dummychain-"

# Native fee/stake denom (18 decimals)
EXAMPLE_ATTO_DENOM: str = "aatom"
EXAMPLE_DISPLAY_DENOM: str = "atom"

# Bech32 main prefixes. Dummy counterpart chains use the foreign default.
APP_BECH32_PREFIX: str = "ledger"
DEFAULT_BECH32_PREFIX: str = "cosmos"

# Tokens per unit of consensus power
DEFAULT_POWER_REDUCTION: int = 10**6
ATTO_POWER_REDUCTION: int = 10**18

# Nominal (unscaled) balance given to every pre-funded account
DEFAULT_PREFUND_UNITS: int = 100_000 * 10**18

# Module accounts
BONDED_POOL_NAME: str = "bonded_tokens_pool"

# Native token pair registered in the erc20 module
NATIVE_TOKEN_CONTRACT: str = "0xD4949664cD82660AaE99bEdc034a0deA8A0bd517"

# EVM default base fee (1 gwei)
DEFAULT_BASE_FEE: int = 1_000_000_000


def tokens_from_consensus_power(power: int, power_reduction: int = DEFAULT_POWER_REDUCTION) -> int:
    return int(power) * int(power_reduction)


# Logical clock shared by coordinated chains
GENESIS_TIME: datetime = datetime(2020, 1, 2, tzinfo=timezone.utc)
BLOCK_TIME_INCREMENT: timedelta = timedelta(seconds=5)
