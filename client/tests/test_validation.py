import sys
from pathlib import Path

import pytest

CLIENT_ROOT = Path(__file__).resolve().parents[1]
if str(CLIENT_ROOT) not in sys.path:
    sys.path.insert(0, str(CLIENT_ROOT))

from utils.validation import (
    Chain,
    Identity,
    InvalidIdentity,
    classify_address,
    is_valid_address,
    validate_wallet_address,
)

ETH = "0xAbCdEf0123456789abcdef0123456789ABCDEF01"
SOL = "So11111111111111111111111111111111111111112"


def test_classifies_eth_address():
    assert classify_address(ETH) == Chain.ETH


def test_classifies_sol_address():
    assert classify_address(SOL) == Chain.SOL


def test_strips_surrounding_whitespace_before_classifying():
    assert classify_address(f"  {ETH}\n") == Chain.ETH
    assert Identity.parse(f"  {SOL} ").address == SOL


@pytest.mark.parametrize(
    "address",
    [
        "",
        None,
        "0x123",
        "0x" + "g" * 40,
        "0" * 40,
        "O" * 40,  # base58 excludes O
        "l" * 40,  # and l
        "1" * 31,
        "1" * 45,
    ],
)
def test_rejects_invalid_addresses(address):
    assert classify_address(address) is None
    assert not is_valid_address(address)


def test_eth_takes_precedence_over_sol():
    # 0x-prefixed strings can never be base58 (0 is excluded), but a valid
    # ETH address must never be reported as SOL.
    assert Identity.parse(ETH).chain == Chain.ETH


def test_identity_is_immutable():
    identity = Identity.parse(ETH)
    with pytest.raises(Exception):
        identity.address = SOL


def test_parse_raises_invalid_identity_with_user_message():
    with pytest.raises(InvalidIdentity) as exc_info:
        Identity.parse("not-an-address")
    assert str(exc_info.value) == "Enter a valid ETH or SOL address"
    assert exc_info.value.address == "not-an-address"
    assert isinstance(exc_info.value, ValueError)


def test_validate_wallet_address_returns_stripped_value():
    assert validate_wallet_address(f" {ETH} ") == ETH
    with pytest.raises(InvalidIdentity):
        validate_wallet_address("0xnope")
