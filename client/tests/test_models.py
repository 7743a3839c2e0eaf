import sys
from pathlib import Path

CLIENT_ROOT = Path(__file__).resolve().parents[1]
if str(CLIENT_ROOT) not in sys.path:
    sys.path.insert(0, str(CLIENT_ROOT))

from conftest import complete_profile_payload
from models import Profile


def test_numeric_strings_are_parsed():
    payload = complete_profile_payload()
    payload["portfolioValue"] = "12500.5"
    payload["analysisData"]["riskScore"] = "42"
    payload["similarWallets"][0]["similarity"] = "0.5"

    profile = Profile.from_api(payload)

    assert profile.portfolio_value == 12500.5
    assert profile.summary.risk_score == 42
    assert profile.similar_wallets[0].similarity_percent == 50


def test_non_object_sections_fall_back_to_defaults():
    payload = complete_profile_payload()
    payload["analysisData"]["metrics"] = "unavailable"
    payload["bioData"]["ai"] = "pending"
    payload["portfolioData"] = ["unexpected"]

    profile = Profile.from_api(payload)

    assert profile.is_complete
    assert profile.summary.metrics is None
    assert profile.bio_data.ai is None
    assert profile.positions == []


def test_missing_profile_data_is_none():
    assert Profile.from_api(None) is None
    assert Profile.from_api("oops") is None
