import pytest
import requests

from conftest import FakeResponse
from remindhub.models import Chat, Message
from remindhub.services import proxy_service
from remindhub.services.proxy_service import ProxyError, normalize_msisdn


def _urls(http_session):
    return [c.args[1] for c in http_session.request.call_args_list]


# -------------------------------------------------
# list_rooms
# -------------------------------------------------

def test_list_rooms_maps_rooms(configured, qontak_client, http_session):
    http_session.request.return_value = FakeResponse(
        200,
        {
            "data": [
                {
                    "id": "r1",
                    "name": "Budi",
                    "account_uniq_id": "6281111",
                    "channel": "ig",
                    "status": "assigned",
                    "unread_count": 3,
                    "last_message": {"text": "Halo"},
                    "last_message_at": "2024-01-01T00:00:00Z",
                    "agent": {"full_name": "Sari"},
                },
                {"id": "r2"},
            ],
            "meta": {"page": 1},
        },
    )

    result = proxy_service.list_rooms(configured, qontak_client, page=2, limit=10)

    first, second = result["data"]
    assert first["contact_name"] == "Budi"
    assert first["channel"] == "instagram"
    assert first["unread"] == 3
    assert first["last_message"] == "Halo"
    assert first["assigned_pic"] == "Sari"
    assert second["contact_name"] == "Unknown"
    assert second["last_message"] == "No message"
    assert second["channel"] == "whatsapp"
    assert result["meta"] == {"page": 1}

    assert _urls(http_session) == ["https://api.test/v1/qontak/chat/rooms?page=2&limit=10&offset=10"]
    headers = http_session.request.call_args.kwargs["headers"]
    assert headers["Authorization"] == "Bearer tok-123"


def test_list_rooms_falls_back_to_legacy(configured, qontak_client, http_session):
    http_session.request.side_effect = [
        FakeResponse(401, {"error": "unauthorized"}, reason="Unauthorized"),
        FakeResponse(200, {"data": [{"id": "legacy-1", "name": "Old"}]}),
    ]

    result = proxy_service.list_rooms(configured, qontak_client)

    assert [r["id"] for r in result["data"]] == ["legacy-1"]
    assert _urls(http_session)[1] == "https://legacy.test/api/open/v1/rooms?limit=20&offset=0"


def test_list_rooms_reports_legacy_error_when_both_fail(configured, qontak_client, http_session):
    http_session.request.side_effect = [
        FakeResponse(401, text='{"error": "primary says no"}'),
        FakeResponse(503, text="legacy down"),
    ]

    with pytest.raises(ProxyError) as exc_info:
        proxy_service.list_rooms(configured, qontak_client)

    assert exc_info.value.status_code == 503
    assert exc_info.value.body["details"] == "legacy down"


def test_list_rooms_falls_back_on_transport_error(configured, qontak_client, http_session):
    http_session.request.side_effect = [
        requests.ConnectionError("dns"),
        FakeResponse(200, {"data": []}),
    ]

    assert proxy_service.list_rooms(configured, qontak_client)["data"] == []


def test_list_rooms_without_token(db_session, qontak_client, http_session):
    with pytest.raises(ProxyError) as exc_info:
        proxy_service.list_rooms(db_session, qontak_client)

    assert exc_info.value.status_code == 400
    http_session.request.assert_not_called()


def test_hmac_mode_signs_primary_requests(configured, qontak_settings, http_session):
    from dataclasses import replace

    from remindhub.qontak.client import QontakClient

    client = QontakClient(settings=replace(qontak_settings, use_hmac=True), session=http_session)
    proxy_service.list_rooms(configured, client)

    headers = http_session.request.call_args.kwargs["headers"]
    assert headers["Authorization"].startswith('hmac username="client-id"')
    assert "Date" in headers


def test_hmac_mode_without_credentials_is_fatal(configured, http_session):
    from remindhub.qontak.client import QontakClient
    from remindhub.qontak.settings import QontakSettings

    client = QontakClient(settings=QontakSettings(use_hmac=True), session=http_session)

    with pytest.raises(ProxyError) as exc_info:
        proxy_service.list_room_history(configured, client, room_id="r1")

    assert exc_info.value.status_code == 500
    http_session.request.assert_not_called()


# -------------------------------------------------
# list_room_history
# -------------------------------------------------

def test_history_is_reversed_and_mapped(configured, qontak_client, http_session):
    http_session.request.return_value = FakeResponse(
        200,
        {
            "data": [
                {"id": "m3", "text": "newest", "direction": "outbound"},
                {"id": "m2", "type": "image"},
                {"id": "m1", "text": "oldest", "is_room_owner": True},
            ]
        },
    )

    result = proxy_service.list_room_history(configured, qontak_client, room_id="r1")

    assert [m["id"] for m in result["data"]] == ["m1", "m2", "m3"]
    assert result["data"][0]["sender"] == "customer"
    assert result["data"][1]["text"] == "[Image]"
    assert result["data"][2]["is_agent"] is True
    assert result["meta"] == {"count": 3, "room_id": "r1"}


@pytest.mark.parametrize(
    "msg",
    [
        {"sender_type": "agent"},
        {"direction": "outbound"},
        {"sender": {"type": "agent"}},
        {"is_room_owner": False},
    ],
)
def test_agent_signals(msg):
    assert proxy_service.map_history_message(msg)["sender"] == "agent"


def test_history_requires_room_id(configured, qontak_client):
    with pytest.raises(ProxyError) as exc_info:
        proxy_service.list_room_history(configured, qontak_client, room_id=None)
    assert exc_info.value.status_code == 400


def test_history_upstream_error_keeps_status(configured, qontak_client, http_session):
    http_session.request.return_value = FakeResponse(404, text="no such room")

    with pytest.raises(ProxyError) as exc_info:
        proxy_service.list_room_history(configured, qontak_client, room_id="r1")

    assert exc_info.value.status_code == 404
    assert exc_info.value.body["details"] == "no such room"


def test_history_invalid_json(configured, qontak_client, http_session):
    http_session.request.return_value = FakeResponse(200, text="<html>oops</html>")

    with pytest.raises(ProxyError) as exc_info:
        proxy_service.list_room_history(configured, qontak_client, room_id="r1")

    assert exc_info.value.status_code == 502


# -------------------------------------------------
# send_message
# -------------------------------------------------

def _chat(db, **kwargs):
    chat = Chat(contact_name="Budi", contact_phone="6281111", unread=1, **kwargs)
    db.add(chat)
    db.commit()
    return chat


def test_send_by_chat_id_mirrors_locally(configured, qontak_client, http_session):
    chat = _chat(configured, room_id="r1")
    http_session.request.return_value = FakeResponse(200, {"data": {"id": "out-1"}})

    result = proxy_service.send_message(configured, qontak_client, chat_id=str(chat.id), text="Siap")

    assert result["success"] is True
    assert _urls(http_session) == ["https://api.test/v1/qontak/chat/rooms/r1/messages"]
    assert http_session.request.call_args.kwargs["json"] == {"text": "Siap", "type": "text"}

    [message] = configured.query(Message).all()
    assert message.sender == "agent"
    assert message.text == "Siap"
    assert chat.unread == 0
    assert chat.last_message == "Siap"


def test_send_by_room_id_does_not_mirror(configured, qontak_client, http_session):
    proxy_service.send_message(configured, qontak_client, room_id="r1", text="hi")
    assert configured.query(Message).count() == 0


def test_send_distinguishes_missing_chat_and_missing_room(configured, qontak_client):
    with pytest.raises(ProxyError) as missing:
        proxy_service.send_message(
            configured, qontak_client, chat_id="00000000-0000-0000-0000-000000000000", text="x"
        )
    assert missing.value.status_code == 404

    chat = _chat(configured)
    with pytest.raises(ProxyError) as unlinked:
        proxy_service.send_message(configured, qontak_client, chat_id=str(chat.id), text="x")
    assert unlinked.value.status_code == 400
    assert "room_id" in unlinked.value.body["error"]


def test_send_requires_text(configured, qontak_client):
    with pytest.raises(ProxyError) as exc_info:
        proxy_service.send_message(configured, qontak_client, room_id="r1", text="")
    assert exc_info.value.status_code == 400


def test_send_failure_is_500_and_not_mirrored(configured, qontak_client, http_session):
    chat = _chat(configured, room_id="r1")
    http_session.request.return_value = FakeResponse(422, {"error": "window closed"})

    with pytest.raises(ProxyError) as exc_info:
        proxy_service.send_message(configured, qontak_client, chat_id=str(chat.id), text="x")

    assert exc_info.value.status_code == 500
    assert exc_info.value.body["status"] == 422
    assert configured.query(Message).count() == 0


# -------------------------------------------------
# start_conversation
# -------------------------------------------------

@pytest.mark.parametrize(
    "raw,expected",
    [("0811-222", "62811222"), ("+62 811 222", "62811222"), ("62811222", "62811222")],
)
def test_normalize_msisdn(raw, expected):
    assert normalize_msisdn(raw) == expected


def test_start_conversation_posts_template(configured, qontak_client, http_session):
    http_session.request.return_value = FakeResponse(201, {"data": {"id": "bc-1"}})

    result = proxy_service.start_conversation(
        configured,
        qontak_client,
        phone_number="0811222",
        template_id="tpl-1",
        template_params=[{"key": "1", "value": "Budi"}],
    )

    assert result == {
        "success": True,
        "data": {"id": "bc-1"},
        "message": "Template sent. Conversation started.",
    }
    assert _urls(http_session) == ["https://api.test/v1/qontak/broadcasts/whatsapp/direct"]
    payload = http_session.request.call_args.kwargs["json"]
    assert payload["to_number"] == "62811222"
    assert payload["to_name"] == "62811222"
    assert payload["channel_integration_id"] == "chan-1"
    assert payload["language"] == {"code": "id"}
    assert payload["parameters"] == {"body": [{"key": "1", "value": "Budi"}]}
    assert configured.query(Chat).count() == 0


def test_start_conversation_requires_channel_id(db_session, qontak_client):
    from remindhub.services.settings_store import KEY_QONTAK_TOKEN, set_setting

    set_setting(db_session, KEY_QONTAK_TOKEN, "tok")

    with pytest.raises(ProxyError) as exc_info:
        proxy_service.start_conversation(db_session, qontak_client, phone_number="0811", template_id="t")

    assert exc_info.value.status_code == 500


def test_start_conversation_requires_phone_and_template(configured, qontak_client):
    with pytest.raises(ProxyError) as exc_info:
        proxy_service.start_conversation(configured, qontak_client, phone_number="0811", template_id=None)
    assert exc_info.value.status_code == 400


# -------------------------------------------------
# validate_token
# -------------------------------------------------

def test_validate_token_ok(qontak_client, http_session):
    http_session.request.return_value = FakeResponse(200, {"data": [{"id": "i1"}]})

    assert proxy_service.validate_token(qontak_client, token="t") == {"valid": True, "data": {"data": [{"id": "i1"}]}}
    assert _urls(http_session) == ["https://api.test/v1/qontak/chat/integrations?limit=5"]


def test_validate_token_non_2xx_is_a_verdict(qontak_client, http_session):
    http_session.request.return_value = FakeResponse(401, text="", reason="Unauthorized")

    verdict = proxy_service.validate_token(qontak_client, token="bad")

    assert verdict["valid"] is False
    assert verdict["status"] == 401
    assert verdict["error"] == "Invalid token. Qontak API: 401 Unauthorized"


def test_validate_token_transport_error_is_a_verdict(qontak_client, http_session):
    http_session.request.side_effect = requests.Timeout("slow")

    verdict = proxy_service.validate_token(qontak_client, token="t")

    assert verdict["valid"] is False
    assert verdict["error"].startswith("Validation failed")


def test_validate_token_missing(qontak_client):
    assert proxy_service.validate_token(qontak_client, token="") == {"valid": False, "error": "Token is required"}


# -------------------------------------------------
# list_templates
# -------------------------------------------------

def test_list_templates_uses_legacy_host(configured, qontak_client, http_session):
    http_session.request.return_value = FakeResponse(200, {"data": [{"id": "tpl-1"}]})

    assert proxy_service.list_templates(configured, qontak_client) == {"data": [{"id": "tpl-1"}]}
    assert _urls(http_session) == ["https://legacy.test/api/open/v1/templates"]


@pytest.mark.parametrize("value,expected", [(None, 7), ("", 7), (3, 3), ("4", 4)])
def test_parse_positive_int(value, expected):
    assert proxy_service.parse_positive_int(value, default=7, field="page") == expected


@pytest.mark.parametrize("value", ["x", 0, -2, True, [1]])
def test_parse_positive_int_rejects(value):
    with pytest.raises(ProxyError) as exc_info:
        proxy_service.parse_positive_int(value, default=1, field="limit")

    assert exc_info.value.status_code == 400
    assert exc_info.value.body == {"error": "limit must be a positive integer"}
