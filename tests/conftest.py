import pytest

from tests.fakes.fake_gateway import FakeGateway

CREDENTIAL_VARS = (
    "APCA_API_KEY_ID",
    "ALPACA_API_KEY_ID",
    "ALPACA_KEY_ID",
    "APCA_API_SECRET_KEY",
    "ALPACA_API_SECRET_KEY",
    "ALPACA_SECRET_KEY",
    "ALPACA_PAPER",
    "LIVE_TRADING",
    "ALPACA_DATA_FEED",
    "UNIVERSE_FILE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in CREDENTIAL_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
