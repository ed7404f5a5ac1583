import pytest

from app.processor.exceptions import InvalidRequestError
from app.processor.request_loader import build_request


def _payload(**overrides: object) -> dict:
    data: dict = {
        "session_id": "s1",
        "user_id": "u1",
        "patient": {"name": "Иванов Петр", "phone": "89123456789"},
        "sources": [
            {"text": "Транскрипт", "kind": "transcript", "encrypted": False, "record_id": 5},
            {"text": "Заметка", "kind": "notes"},
        ],
        "sections": [
            {"name": "Жалобы", "system_prompt": "Опиши жалобы"},
            {"name": "План", "system_prompt": "Опиши план", "temperature": 0, "max_tokens": 200},
        ],
    }
    data.update(overrides)
    return data


class TestBuildRequest:
    def test_builds_request(self) -> None:
        request = build_request(_payload())
        assert request.session_id == "s1"
        assert request.identifiers.name == "Иванов Петр"
        assert request.sources[0].record_id == "5"
        assert request.sources[1].encrypted is None
        assert request.sections[0].temperature is None
        assert request.sections[1].temperature == 0.0
        assert request.sections[1].max_tokens == 200

    def test_patient_is_optional(self) -> None:
        request = build_request(_payload(patient=None))
        assert request.identifiers.name is None

    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"session_id": ""}, "session_id"),
            ({"patient": "Иванов"}, "patient"),
            ({"sources": {}}, "sources"),
            ({"sources": [{"text": 1}]}, r"sources\[0\].text"),
            ({"sources": [{"text": "x", "kind": "audio"}]}, r"sources\[0\].kind"),
            ({"sources": [{"text": "x", "encrypted": "yes"}]}, r"sources\[0\].encrypted"),
            ({"sections": [{"name": "A"}]}, r"sections\[0\].system_prompt"),
            ({"sections": [{"name": "A", "system_prompt": "p", "max_tokens": 0}]}, "max_tokens"),
            ({"sections": [{"name": "A", "system_prompt": "p", "temperature": True}]}, "temperature"),
        ],
    )
    def test_rejects_invalid_payload(self, overrides: dict, message: str) -> None:
        with pytest.raises(InvalidRequestError, match=message):
            build_request(_payload(**overrides))

    def test_rejects_non_object(self) -> None:
        with pytest.raises(InvalidRequestError, match="object"):
            build_request([])
