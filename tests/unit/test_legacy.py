import base64
from unittest.mock import MagicMock, patch

import pytest

from app.encryption.codec import AesGcmCodec
from app.encryption.exceptions import AuthenticationFailure, MalformedInputError
from app.encryption.legacy import looks_encrypted, read_field

KEY = base64.b64encode(bytes(range(32))).decode("ascii")
LONG_TEXT = "Клиент рассказал о работе и семье. " * 5


@pytest.fixture
def codec() -> AesGcmCodec:
    return AesGcmCodec(KEY)


class TestLooksEncrypted:
    def test_real_blob(self, codec: AesGcmCodec) -> None:
        assert looks_encrypted(codec.encrypt(LONG_TEXT)) is True

    def test_short_value(self) -> None:
        assert looks_encrypted("QUJD") is False

    def test_plaintext_with_colon(self) -> None:
        assert looks_encrypted("A" * 120 + ":") is False

    def test_plaintext_with_newline(self) -> None:
        assert looks_encrypted("A" * 60 + "\n" + "A" * 60) is False

    def test_non_base64_characters(self) -> None:
        assert looks_encrypted(LONG_TEXT) is False


class TestReadField:
    def test_empty_value(self, codec: AesGcmCodec) -> None:
        value = read_field(None, True, codec)
        assert value.text == ""
        assert value.source == "empty"

    def test_explicit_flag_decrypts(self, codec: AesGcmCodec) -> None:
        value = read_field(codec.encrypt("текст"), True, codec)
        assert value.text == "текст"
        assert value.source == "decrypted"

    def test_explicit_flag_propagates_errors(self, codec: AesGcmCodec) -> None:
        with pytest.raises(MalformedInputError):
            read_field("QUJD", True, codec)

    def test_explicit_plaintext_flag_skips_heuristic(self, codec: AesGcmCodec) -> None:
        blob = codec.encrypt(LONG_TEXT)
        value = read_field(blob, False, codec)
        assert value.text == blob
        assert value.source == "plaintext"

    def test_unflagged_plaintext(self, codec: AesGcmCodec) -> None:
        value = read_field(LONG_TEXT, None, codec)
        assert value.text == LONG_TEXT
        assert value.source == "plaintext"

    def test_unflagged_blob_decrypts_and_logs_audit(self, codec: AesGcmCodec) -> None:
        blob = codec.encrypt(LONG_TEXT)
        with patch("app.encryption.legacy.Log") as mock_log:
            value = read_field(blob, None, codec, record_id="rec-1")
        assert value.text == LONG_TEXT
        assert value.source == "legacy_heuristic"
        args, kwargs = mock_log.warning.call_args
        assert kwargs == {"record_id": "rec-1"}
        assert "Клиент" not in args[0]

    def test_heuristic_false_positive_falls_back(self, codec: AesGcmCodec) -> None:
        lookalike = "A" * 120
        with patch("app.encryption.legacy.Log") as mock_log:
            value = read_field(lookalike, None, codec)
        assert value.text == lookalike
        assert value.source == "legacy_plaintext"
        mock_log.warning.assert_called_once()

    def test_heuristic_auth_failure_falls_back(self) -> None:
        codec = MagicMock()
        codec.decrypt.side_effect = AuthenticationFailure("bad tag")
        value = read_field("B" * 120, None, codec)
        assert value.source == "legacy_plaintext"
