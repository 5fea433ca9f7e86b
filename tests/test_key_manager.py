from __future__ import annotations

import pytest
from solders.keypair import Keypair

from core.key_manager import KeyManager, read_keypair


def _manager(tmp_path, **kwargs):
    kwargs.setdefault("keypair_path", str(tmp_path / "missing.json"))
    kwargs.setdefault("jito_auth_keypair_path", str(tmp_path / "missing_jito.json"))
    return KeyManager(cache_dir=str(tmp_path / "cache"), **kwargs)


def test_encrypt_decrypt(tmp_path):
    manager = _manager(tmp_path)
    encrypted = manager.encrypt("secret", "pw")

    assert b"secret" not in encrypted
    assert manager.decrypt(encrypted, "pw") == "secret"
    with pytest.raises(ValueError, match="Incorrect password"):
        manager.decrypt(encrypted, "wrong")


def test_read_keypair_from_cli_file(tmp_path):
    keypair = Keypair()
    path = tmp_path / "id.json"
    path.write_text(keypair.to_json())
    assert read_keypair(str(path)).pubkey() == keypair.pubkey()

    path.write_text("[1, 2, 3]")
    with pytest.raises(ValueError):
        read_keypair(str(path))


def test_keys_are_cached_encrypted_and_reloaded(tmp_path, monkeypatch):
    keypair, jito = Keypair(), Keypair()
    (tmp_path / "id.json").write_text(keypair.to_json())
    monkeypatch.setattr(KeyManager, "_prompt_for_password", lambda self, prompt_text="": "pw")
    monkeypatch.setattr(KeyManager, "_prompt_for_private_key", lambda self, name: str(jito))
    monkeypatch.setattr(KeyManager, "_confirm_proceed", lambda self: True)

    first = _manager(tmp_path, keypair_path=str(tmp_path / "id.json"))
    loaded, loaded_jito = first.initialize_keys()
    assert loaded.pubkey() == keypair.pubkey()
    assert loaded_jito.pubkey() == jito.pubkey()
    assert (tmp_path / "cache" / KeyManager.SOL_PK_FILE).stat().st_size > 0

    # cli file gone, cache must be enough
    (tmp_path / "id.json").unlink()
    loaded, loaded_jito = _manager(tmp_path).initialize_keys()
    assert loaded.pubkey() == keypair.pubkey()
    assert loaded_jito.pubkey() == jito.pubkey()


def test_without_jito_only_trading_key_is_managed(tmp_path, monkeypatch):
    keypair = Keypair()
    monkeypatch.setattr(KeyManager, "_prompt_for_password", lambda self, prompt_text="": "pw")
    monkeypatch.setattr(KeyManager, "_prompt_for_private_key", lambda self, name: str(keypair))
    monkeypatch.setattr(KeyManager, "_confirm_proceed", lambda self: True)

    loaded, jito = _manager(tmp_path, use_jito=False).initialize_keys()
    assert loaded.pubkey() == keypair.pubkey()
    assert jito is None
    assert not (tmp_path / "cache" / KeyManager.JITO_PK_FILE).exists()


def test_declining_exits(tmp_path, monkeypatch):
    monkeypatch.setattr(KeyManager, "_prompt_for_password", lambda self, prompt_text="": "pw")
    monkeypatch.setattr(KeyManager, "_prompt_for_private_key", lambda self, name: str(Keypair()))
    monkeypatch.setattr(KeyManager, "_confirm_proceed", lambda self: False)

    with pytest.raises(SystemExit):
        _manager(tmp_path, use_jito=False).initialize_keys()
