"""
Tests for zkwallet_core.cli — argument parsing and the offline commands.
"""

import json
import logging
from unittest.mock import patch

import pytest

from zkwallet_core import cli
from zkwallet_core.identity import Identity, Provider
from zkwallet_core.keys import derive_direct_keypair


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    saved = (root.level, list(root.handlers))
    yield
    root.setLevel(saved[0])
    root.handlers[:] = saved[1]


def test_parse_requires_command():
    with pytest.raises(SystemExit):
        cli.parse_args([])


def test_address_preview(capsys):
    assert cli.main(["--json", "address", "--provider", "github",
                     "--subject", "42", "--email", "a@example.com"]) == 0
    out = json.loads(capsys.readouterr().out)
    expected = derive_direct_keypair(
        Identity(subject="42", email="a@example.com", provider=Provider.GITHUB)
    ).address
    assert out == {"address": expected, "scheme": "direct"}


def test_network_json(capsys):
    with patch.dict("os.environ", {"ZKWALLET_GITHUB_CLIENT_ID": "gh"}, clear=False):
        assert cli.main(["--json", "network"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["network"] == "Devnet"
    assert out["faucet"] == "https://faucet.devnet.sui.io/v2/gas"
    assert "github" in out["providers"]


def test_balance_rejects_bad_address(capsys):
    assert cli.main(["balance", "0x12"]) == 1
    assert "Invalid address format" in capsys.readouterr().err
