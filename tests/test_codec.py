"""
Tests for the Codec and the envelope crypto core.

Tests cover:
- Round-trip of the serialized application state
- Legacy plaintext pass-through and non-JSON input
- Graceful degradation when the key does not match
- Fresh nonce per encryption
- Fail-open encryption and the strict alternative
- ChaCha20-Poly1305 backend
- Envelope parsing and malformed envelope fields
"""
import orjson
import pytest
from cryptography.exceptions import InvalidTag

from finance_vault.storage import MemoryStorage
from finance_vault.vault.codec import EMPTY_OBJECT, Codec
from finance_vault.vault.crypto import (
    EncryptedEnvelope,
    decrypt_envelope,
    encrypt_envelope,
    generate_key_material,
    parse_envelope,
)
from finance_vault.vault.keys import KeyManager


class BrokenStorage(MemoryStorage):
    """Session storage that refuses writes."""

    def set_item(self, key: str, value: str) -> None:
        raise OSError("session storage unavailable")


class TestRoundTrip:
    """Tests for encrypt followed by decrypt."""

    @pytest.mark.asyncio
    async def test_state_round_trip(self, codec, wire_state):
        """Decrypting an encrypted state yields the identical JSON."""
        plaintext = orjson.dumps(wire_state).decode()
        serialized = await codec.encrypt(plaintext)

        assert serialized != plaintext
        assert parse_envelope(serialized) is not None
        restored = await codec.decrypt(serialized)
        assert orjson.loads(restored) == wire_state

    @pytest.mark.asyncio
    async def test_envelope_fields(self, codec):
        """Envelope carries hex data, a 12-byte hex iv and a ms timestamp."""
        envelope = orjson.loads(await codec.encrypt('{"banks": []}'))
        assert set(envelope) == {"data", "iv", "timestamp"}
        assert len(bytes.fromhex(envelope["iv"])) == 12
        assert envelope["timestamp"] > 1_600_000_000_000

    @pytest.mark.asyncio
    async def test_iv_differs_between_encryptions(self, codec):
        """Same plaintext encrypted twice never reuses a nonce."""
        first = orjson.loads(await codec.encrypt("same"))
        second = orjson.loads(await codec.encrypt("same"))
        assert first["iv"] != second["iv"]
        assert first["data"] != second["data"]

    @pytest.mark.asyncio
    async def test_unicode_round_trip(self, codec):
        plaintext = '{"description": "Café ñandú 💳"}'
        assert await codec.decrypt(await codec.encrypt(plaintext)) == plaintext

    @pytest.mark.asyncio
    async def test_chacha20_backend(self, key_manager):
        """The ChaCha20-Poly1305 backend round-trips as well."""
        codec = Codec(key_manager, backend="chacha20")
        serialized = await codec.encrypt('{"banks": []}')
        assert await codec.decrypt(serialized) == '{"banks": []}'


class TestDecrypt:
    """Tests for decrypt on non-envelope and undecryptable input."""

    @pytest.mark.asyncio
    async def test_legacy_plaintext_returned_unchanged(self, codec, wire_state):
        """A stored state from before encryption passes through untouched."""
        legacy = orjson.dumps(wire_state).decode()
        assert await codec.decrypt(legacy) == legacy

    @pytest.mark.asyncio
    async def test_non_json_returned_as_is(self, codec):
        assert await codec.decrypt("definitely not json") == "definitely not json"

    @pytest.mark.asyncio
    async def test_partial_envelope_is_plaintext(self, codec):
        """An object missing iv is not treated as an envelope."""
        partial = '{"data": "abcd", "timestamp": 1}'
        assert await codec.decrypt(partial) == partial

    @pytest.mark.asyncio
    async def test_wrong_key_returns_serialized(self, codec, key_manager):
        """After the key is replaced, the envelope JSON is handed back."""
        serialized = await codec.encrypt('{"banks": []}')
        key_manager.clear_session()

        result = await codec.decrypt(serialized)
        assert result == serialized

    @pytest.mark.asyncio
    async def test_tampered_ciphertext_does_not_raise(self, codec):
        envelope = orjson.loads(await codec.encrypt('{"banks": []}'))
        flipped = "0" if envelope["data"][0] != "0" else "1"
        envelope["data"] = flipped + envelope["data"][1:]
        tampered = orjson.dumps(envelope).decode()

        assert await codec.decrypt(tampered) == tampered

    @pytest.mark.asyncio
    async def test_short_iv_does_not_raise(self, codec):
        envelope = orjson.loads(await codec.encrypt('{"banks": []}'))
        envelope["iv"] = "00ff"
        broken = orjson.dumps(envelope).decode()
        assert await codec.decrypt(broken) == broken


class TestEncryptFailure:
    """Tests for the fail-open policy."""

    @pytest.mark.asyncio
    async def test_fail_open_returns_plaintext(self):
        """If no key can be stored, the plaintext is returned."""
        codec = Codec(KeyManager(BrokenStorage()))
        assert await codec.encrypt('{"banks": []}') == '{"banks": []}'

    @pytest.mark.asyncio
    async def test_fail_closed_raises(self):
        codec = Codec(KeyManager(BrokenStorage()), fail_open=False)
        with pytest.raises(OSError):
            await codec.encrypt('{"banks": []}')


class TestEnvelopeCore:
    """Tests for the crypto helpers."""

    def test_parse_envelope_rejects_non_objects(self):
        assert parse_envelope("[1, 2, 3]") is None
        assert parse_envelope("42") is None
        assert parse_envelope(None) is None
        assert parse_envelope('{"data": "", "iv": "00", "timestamp": 1}') is None

    def test_parse_envelope_rejects_string_timestamp(self):
        """Strict parsing does not coerce types."""
        assert parse_envelope('{"data": "ab", "iv": "cd", "timestamp": "1"}') is None

    def test_decrypt_envelope_rejects_short_iv(self):
        key = generate_key_material()
        envelope = EncryptedEnvelope(data="00" * 32, iv="00" * 8, timestamp=1)
        with pytest.raises(ValueError):
            decrypt_envelope(envelope, key)

    def test_decrypt_envelope_rejects_short_ciphertext(self):
        key = generate_key_material()
        envelope = EncryptedEnvelope(data="00" * 4, iv="00" * 12, timestamp=1)
        with pytest.raises(ValueError):
            decrypt_envelope(envelope, key)

    def test_decrypt_envelope_wrong_key(self):
        envelope = encrypt_envelope(b"secret", generate_key_material())
        with pytest.raises(InvalidTag):
            decrypt_envelope(envelope, generate_key_material())

    def test_empty_object_constant(self):
        assert orjson.loads(EMPTY_OBJECT) == {}
