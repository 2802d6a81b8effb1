from __future__ import annotations

import pytest

from gridscout.client import DEFAULT_SESSION, ClientCredentials, load_credentials


def test_load_credentials() -> None:
    credentials = load_credentials({"API_ID": " 12345 ", "API_HASH": "abc", "SESSION_NAME": "scouts"})
    assert credentials == ClientCredentials(api_id=12345, api_hash="abc", session_name="scouts")


def test_session_name_defaults() -> None:
    assert load_credentials({"API_ID": "1", "API_HASH": "abc"}).session_name == DEFAULT_SESSION


@pytest.mark.parametrize(
    "environ",
    [{}, {"API_ID": "1"}, {"API_HASH": "abc"}, {"API_ID": "one", "API_HASH": "abc"}],
)
def test_missing_or_invalid_credentials(environ) -> None:
    with pytest.raises(RuntimeError):
        load_credentials(environ)
