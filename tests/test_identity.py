"""Tests for the device identity key."""

import json

from vault.identity import IdentityKey, IdentityKeyManager, PUBLIC_KEY_SIZE, verify_envelope


class TestIdentityKeyManager:
    def test_creates_key_when_missing(self, data_dir):
        manager = IdentityKeyManager(data_dir)
        key = manager.load_or_create()

        assert manager.path.exists()
        data = json.loads(manager.path.read_text())
        assert len(data["publicKey"]) == PUBLIC_KEY_SIZE
        assert bytes(data["publicKey"]) == key.public_key

    def test_reloads_same_key(self, data_dir):
        first = IdentityKeyManager(data_dir).load_or_create()
        second = IdentityKeyManager(data_dir).load_or_create()
        assert first.public_key == second.public_key

    def test_regenerates_on_wrong_public_key_length(self, data_dir):
        manager = IdentityKeyManager(data_dir)
        original = manager.load_or_create()
        data = json.loads(manager.path.read_text())
        data["publicKey"] = data["publicKey"][:31]
        manager.path.write_text(json.dumps(data))

        replacement = IdentityKeyManager(data_dir).load_or_create()
        assert replacement.public_key != original.public_key
        assert len(json.loads(manager.path.read_text())["publicKey"]) == PUBLIC_KEY_SIZE

    def test_regenerates_on_mismatched_pair(self, data_dir):
        manager = IdentityKeyManager(data_dir)
        manager.load_or_create()
        data = json.loads(manager.path.read_text())
        data["publicKey"] = list(IdentityKey.generate().public_key)
        manager.path.write_text(json.dumps(data))

        replacement = IdentityKeyManager(data_dir).load_or_create()
        assert replacement.public_key != bytes(data["publicKey"])

    def test_regenerates_on_corrupt_file(self, data_dir):
        manager = IdentityKeyManager(data_dir)
        manager.path.write_text("{not json")
        key = manager.load_or_create()
        assert IdentityKey.from_dict(json.loads(manager.path.read_text())).public_key == key.public_key


class TestEnvelope:
    def test_sign_and_verify(self, data_dir):
        manager = IdentityKeyManager(data_dir)
        envelope = manager.sign_payload({"command": "get_balance", "wallet": "rAddress"})

        assert set(envelope) == {"payload", "pub_key", "signature"}
        assert verify_envelope(envelope)

    def test_tampered_payload_fails(self, data_dir):
        envelope = IdentityKeyManager(data_dir).sign_payload({"amount": "1"})
        envelope["payload"] = {"amount": "1000"}
        assert not verify_envelope(envelope)

    def test_malformed_envelope_fails(self):
        assert not verify_envelope({"payload": {}})
        assert not verify_envelope({"payload": {}, "pub_key": "!!", "signature": "!!"})
