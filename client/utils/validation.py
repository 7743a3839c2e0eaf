import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel


# Ethereum address regex
ETH_ADDRESS_REGEX = re.compile(r"^0x[a-fA-F0-9]{40}$")

# Solana base58 public key (no 0, O, I, l)
SOL_ADDRESS_REGEX = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


class InvalidIdentity(ValueError):
    """Raised for an address that is neither a valid ETH nor SOL address.

    Never reaches the network: callers validate before issuing requests.
    """

    def __init__(self, address: Optional[str]):
        self.address = address
        super().__init__("Enter a valid ETH or SOL address")


class Chain(str, Enum):
    ETH = "eth"
    SOL = "sol"


def classify_address(address: Optional[str]) -> Optional[Chain]:
    """Return the chain an address belongs to, or ``None`` when invalid.

    ETH wins when both patterns could match.
    """
    if not address:
        return None
    address = address.strip()
    if ETH_ADDRESS_REGEX.match(address):
        return Chain.ETH
    if SOL_ADDRESS_REGEX.match(address):
        return Chain.SOL
    return None


def is_valid_address(address: Optional[str]) -> bool:
    return classify_address(address) is not None


def validate_wallet_address(address: Optional[str]) -> str:
    """Validate ETH/SOL address format and return the stripped address"""
    if classify_address(address) is None:
        raise InvalidIdentity(address)
    return address.strip()


class Identity(BaseModel, frozen=True):
    """A classified wallet address. Immutable once built."""

    address: str
    chain: Chain

    @classmethod
    def parse(cls, address: Optional[str]) -> "Identity":
        chain = classify_address(address)
        if chain is None:
            raise InvalidIdentity(address)
        return cls(address=address.strip(), chain=chain)

    def __str__(self) -> str:
        return self.address

