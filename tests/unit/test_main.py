import json
from pathlib import Path

import pytest

from app.encryption.exceptions import EncryptionConfigurationError
from app.main import main


def _write_request(tmp_path: Path) -> Path:
    path = tmp_path / "request.json"
    path.write_text(
        json.dumps(
            {
                "session_id": "s1",
                "user_id": "u1",
                "patient": {"name": "Иванов Петр"},
                "sources": [{"text": "Иванов Петр, 45 лет.", "encrypted": False}],
                "sections": [{"name": "Жалобы", "system_prompt": "Опиши жалобы"}],
            },
            ensure_ascii=False,
        ),
        encoding="utf-8",
    )
    return path


class TestMain:
    def test_prints_status_summary(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
        encryption_key: str,
    ) -> None:
        monkeypatch.setenv("ENCRYPTION_KEY", encryption_key)
        monkeypatch.setenv("GENERATION_PROVIDER", "example")
        monkeypatch.setenv("GENERATION_DISPATCH_DELAY_MS", "0")
        main(["--request", str(_write_request(tmp_path))])
        out = capsys.readouterr().out
        summary = json.loads(out[out.index("{") :])
        assert summary["status"] == "completed"
        assert summary["sections"][0]["name"] == "Жалобы"

    def test_fails_fast_without_key(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ENCRYPTION_KEY", "")
        monkeypatch.setenv("GENERATION_PROVIDER", "example")
        with pytest.raises(EncryptionConfigurationError):
            main(["--request", str(_write_request(tmp_path))])
