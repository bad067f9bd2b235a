import json

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from farming_client.config import DEFAULT_PROGRAM_ID, Settings, load_keypair
from farming_client.errors import ConfigError


def test_load_keypair_from_cli_format(tmp_path):
    kp = Keypair()
    path = tmp_path / "id.json"
    path.write_text(json.dumps(list(bytes(kp))))
    assert load_keypair(path).pubkey() == kp.pubkey()


def test_load_keypair_from_secret_key_object(tmp_path):
    kp = Keypair()
    path = tmp_path / "wallet.json"
    path.write_text(json.dumps({"secretKey": list(bytes(kp))}))
    assert load_keypair(str(path)).pubkey() == kp.pubkey()


@pytest.mark.parametrize("content", ["not json", json.dumps({"key": 1}), json.dumps([1, 2, 3])])
def test_bad_keypair_files(tmp_path, content):
    path = tmp_path / "bad.json"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_keypair(path)


def test_missing_keypair_file(tmp_path):
    with pytest.raises(ConfigError):
        load_keypair(tmp_path / "absent.json")


def test_settings_defaults_and_env(monkeypatch):
    assert Settings().program_pubkey() == Pubkey.from_string(DEFAULT_PROGRAM_ID)
    monkeypatch.setenv("FARMING_PRIORITY_FEE", "500")
    monkeypatch.setenv("FARMING_COMMITMENT", "Finalized")
    settings = Settings()
    assert settings.priority_fee == 500
    assert settings.commitment_level() == "finalized"


def test_invalid_settings_values():
    with pytest.raises(ConfigError):
        Settings(commitment="eventually").commitment_level()
    with pytest.raises(ConfigError):
        Settings(program_id="nope").program_pubkey()
