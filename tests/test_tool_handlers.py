"""Tests for tool handlers and the tool catalog, against a fake client."""

import pytest

from conftest import FakeClient, failed, ok
from gateway.core.errors import ExecutionError, InvalidParamsError
from gateway.tools import calendars, contacts, conversations, locations, tasks
from gateway.tools.catalog import ALLOWED_TOOLS, build_catalog, build_registry


@pytest.fixture
def client():
    return FakeClient()


class TestCatalog:
    def test_every_allowlisted_tool_is_cataloged(self, client):
        names = [tool.name for tool in build_catalog(client)]

        assert len(names) == 20
        assert set(names) == set(ALLOWED_TOOLS)

    def test_manifest_entries(self, client):
        manifest = {entry["name"]: entry for entry in build_registry(client).manifest()}

        create = manifest["tasks_create"]
        assert create["readWrite"] == "write"
        assert create["approval_required"] is True
        assert create["inputSchema"]["required"] == ["title", "dueDateTime"]
        assert create["role_allowlist"] == ["executive", "recruit", "client"]

        search = manifest["contacts_search"]
        assert search["readWrite"] == "read"
        assert search["approval_required"] is False

    def test_write_tools(self, client):
        writes = {tool.name for tool in build_catalog(client) if tool.is_write}

        assert writes == {
            "contacts_upsert",
            "contacts_update_status",
            "calendar_create_appointment",
            "calendar_reschedule_appointment",
            "calendar_cancel_appointment",
            "conversations_send_message",
            "conversations_send_new_email",
            "locations_tags_create",
            "locations_tags_delete",
            "tasks_create",
            "tasks_complete",
        }

    @pytest.mark.asyncio
    async def test_handler_errors_tagged_with_tool_name(self, client):
        registry = build_registry(client)

        with pytest.raises(InvalidParamsError) as exc_info:
            await registry.lookup("contacts_search").execute({})

        assert exc_info.value.data() == {"status": 400, "endpoint": "contacts_search"}


class TestContacts:
    @pytest.mark.asyncio
    async def test_search_defaults(self, client):
        client.queue(ok({"contacts": [{"id": "c1"}]}))

        result = await contacts.search(client, {"query": "Ann"})

        assert result == {"contacts": [{"id": "c1"}]}
        assert client.calls[0]["body"] == {"locationId": "LOC1", "query": "Ann", "pageLimit": 10}

    @pytest.mark.asyncio
    async def test_search_accepts_legacy_limit(self, client):
        await contacts.search(client, {"query": "Ann", "limit": 25})

        assert client.calls[0]["body"]["pageLimit"] == 25

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, 101, 2.5, "ten", True])
    async def test_search_rejects_bad_page_limit(self, client, limit):
        with pytest.raises(InvalidParamsError):
            await contacts.search(client, {"query": "Ann", "pageLimit": limit})
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_search_requires_location(self):
        client = FakeClient(location_id="")

        with pytest.raises(InvalidParamsError) as exc_info:
            await contacts.search(client, {"query": "Ann"})

        assert exc_info.value.message == "locationId is required"

    @pytest.mark.asyncio
    async def test_upsert_updates_phone_match(self, client):
        client.queue(ok({"contacts": [{"id": "c7"}]}), ok({"contact": {"id": "c7"}}))

        result = await contacts.upsert(
            client, {"firstName": "Ann", "lastName": "Lee", "phone": "+15550100", "email": "a@x.io"}
        )

        assert result == {"contact": {"id": "c7"}, "action": "updated"}
        assert client.calls[0]["body"] == {"locationId": "LOC1", "phone": "+15550100"}
        assert client.calls[1]["method"] == "PUT"
        assert client.calls[1]["path"] == "/contacts/c7"
        assert client.calls[1]["body"]["name"] == "Ann Lee"

    @pytest.mark.asyncio
    async def test_upsert_falls_back_to_email_then_creates(self, client):
        client.queue(ok({"contacts": []}), ok({"contacts": []}), ok({"contact": {"id": "new"}}))

        result = await contacts.upsert(
            client, {"firstName": "Ann", "lastName": "Lee", "phone": "+15550100", "email": "a@x.io"}
        )

        assert result["action"] == "created"
        assert client.calls[1]["body"] == {"locationId": "LOC1", "email": "a@x.io"}
        assert client.calls[2]["method"] == "POST"
        assert client.calls[2]["path"] == "/contacts"

    @pytest.mark.asyncio
    async def test_update_status_needs_a_change(self, client):
        with pytest.raises(InvalidParamsError) as exc_info:
            await contacts.update_status(client, {"contactId": "c1"})

        assert exc_info.value.message == "addTags, removeTags, or stageId is required"

    @pytest.mark.asyncio
    async def test_update_status_sends_only_given_fields(self, client):
        await contacts.update_status(client, {"contactId": "c1", "addTags": ["vip"], "removeTags": "x"})

        assert client.calls[0]["body"] == {"addTags": ["vip"]}
        assert client.calls[0]["path"] == "/contacts/c1"


class TestCalendars:
    def test_parse_epoch_ms(self):
        assert calendars.parse_epoch_ms("2026-01-01T00:00:00Z") == 1767225600000
        assert calendars.parse_epoch_ms("2026-01-01T00:00:00") == 1767225600000
        assert calendars.parse_epoch_ms("2026-01-01T00:00:00-05:00") == 1767243600000
        assert calendars.parse_epoch_ms("not a date") is None
        assert calendars.parse_epoch_ms(None) is None

    @pytest.mark.asyncio
    async def test_free_slots_sends_epoch_ms(self, client):
        client.queue(ok({"slots": ["a"]}))

        result = await calendars.free_slots(
            client,
            {
                "calendarId": "cal1",
                "startDateTime": "2026-01-01T00:00:00Z",
                "endDateTime": "2026-01-02T00:00:00Z",
                "timezone": "UTC",
            },
        )

        assert result == {"slots": ["a"]}
        call = client.calls[0]
        assert call["path"] == "/calendars/cal1/free-slots"
        assert call["query"] == {"startDate": 1767225600000, "endDate": 1767312000000, "timezone": "UTC"}

    @pytest.mark.asyncio
    async def test_free_slots_rejects_bad_dates(self, client):
        with pytest.raises(InvalidParamsError):
            await calendars.free_slots(
                client, {"calendarId": "cal1", "startDateTime": "soon", "endDateTime": "later"}
            )

    @pytest.mark.asyncio
    async def test_create_appointment_prefers_datetime_fields(self, client):
        await calendars.create_appointment(
            client,
            {
                "calendarId": "cal1",
                "contactId": "c1",
                "title": "Intro",
                "startDateTime": "2026-01-01T10:00:00Z",
                "startTime": "ignored",
                "endDateTime": "2026-01-01T10:30:00Z",
            },
        )

        body = client.calls[0]["body"]
        assert body["startTime"] == "2026-01-01T10:00:00Z"
        assert body["endTime"] == "2026-01-01T10:30:00Z"
        assert body["title"] == "Intro"
        assert body["locationId"] == "LOC1"
        assert "startDateTime" not in body

    @pytest.mark.asyncio
    async def test_cancel_appointment(self, client):
        result = await calendars.cancel_appointment(client, {"appointmentId": "a1", "reasonCode": "no_show"})

        assert result["success"] is True
        assert client.calls[0]["path"] == "/appointments/a1/cancel"
        assert client.calls[0]["body"] == {"locationId": "LOC1", "reasonCode": "no_show"}


class TestConversations:
    @pytest.mark.asyncio
    async def test_list_threads_filters(self, client):
        await conversations.list_threads(client, {"channel": "fax", "unreadOnly": True, "limit": 5})

        assert client.calls[0]["query"] == {"locationId": "LOC1", "unreadOnly": True, "limit": 5}

    @pytest.mark.asyncio
    async def test_send_new_email_needs_recipient(self, client):
        with pytest.raises(InvalidParamsError) as exc_info:
            await conversations.send_new_email(client, {"message": "Hi"})

        assert exc_info.value.message == "contactId or email is required"

    @pytest.mark.asyncio
    async def test_send_new_email_body(self, client):
        await conversations.send_new_email(client, {"email": "a@x.io", "message": "Hi", "subject": "Hello"})

        body = client.calls[0]["body"]
        assert body["type"] == "Email"
        assert body["html"] == "Hi"
        assert body["subject"] == "Hello"
        assert "contactId" not in body

    @pytest.mark.asyncio
    async def test_report_direct(self, client):
        client.queue(ok({"total": 4}))

        result = await conversations.report(client, {"channel": "sms"})

        assert result == {"report": {"total": 4}}
        assert client.calls[0]["query"] == {"locationId": "LOC1", "channel": "sms"}

    @pytest.mark.asyncio
    async def test_report_retries_with_epoch_ms(self, client):
        client.queue(failed(400, endpoint="/conversations/reports"), ok({"total": 2}))

        result = await conversations.report(client, {"startDate": "2026-01-01", "endDate": "2026-01-01"})

        assert result == {"report": {"total": 2}, "_retry": True, "_format": "epoch_ms"}
        assert client.calls[1]["query"] == {
            "locationId": "LOC1",
            "startDate": 1767225600000,
            "endDate": 1767311999999,
        }

    @pytest.mark.asyncio
    async def test_report_tries_alternate_endpoints(self, client):
        client.queue(failed(400), failed(400), failed(400), failed(404), ok({"total": 1}))

        result = await conversations.report(client, {"startDate": "2026-01-01"})

        assert result["_endpoint"] == "/conversations/reports/summary"
        assert client.calls[2]["query"] == {"locationId": "LOC1", "start": 1767225600000}

    @pytest.mark.asyncio
    async def test_report_falls_back_to_search_summary(self, client):
        client.queue(
            failed(404),
            ok({
                "conversations": [
                    {"channel": "sms", "status": "open", "unreadCount": 2},
                    {"type": "email", "unread": True},
                    {"channel": "sms", "status": "closed", "unreadCount": 0},
                ]
            }),
        )

        result = await conversations.report(client, {})

        assert result["_fallback"] == "conversations_search"
        summary = result["report"]
        assert summary["total"] == 3
        assert summary["unread"] == 2
        assert summary["byChannel"] == {"sms": 2, "email": 1}
        assert summary["byStatus"] == {"open": 1, "unknown": 1, "closed": 1}
        assert len(summary["sample"]) == 3

    @pytest.mark.asyncio
    async def test_report_raises_last_failure_with_body(self, client):
        client.queue(
            failed(500, "Report failed", "/conversations/reports", response={"message": "Report failed"}),
            failed(500, "Search failed", "/conversations/search"),
        )

        with pytest.raises(ExecutionError) as exc_info:
            await conversations.report(client, {})

        assert exc_info.value.message == "Report failed"
        assert exc_info.value.data()["response"] == {"message": "Report failed"}


class TestLocationsAndTasks:
    @pytest.mark.asyncio
    async def test_tag_lifecycle(self, client):
        client.queue(ok({"tags": [{"id": "t1"}]}), ok({"tag": {"id": "t2"}}), ok({}))

        assert await locations.list_tags(client, {}) == {"tags": [{"id": "t1"}]}
        assert await locations.create_tag(client, {"name": "vip"}) == {"tag": {"tag": {"id": "t2"}}}
        assert await locations.delete_tag(client, {"tagId": "t2"}) == {"success": True}

        assert [c["path"] for c in client.calls] == [
            "/locations/LOC1/tags",
            "/locations/LOC1/tags",
            "/locations/LOC1/tags/t2",
        ]
        assert client.calls[2]["method"] == "DELETE"

    @pytest.mark.asyncio
    async def test_create_task_on_contact(self, client):
        client.queue(ok({"task": {"id": "t1"}}))

        result = await tasks.create_task(
            client,
            {"title": "T", "dueDateTime": "2026-02-18T17:00:00-05:00", "contactId": "C1", "priority": "urgent"},
        )

        assert result == {"task": {"id": "t1"}}
        assert client.calls[0]["path"] == "/contacts/C1/tasks"
        assert client.calls[0]["body"] == {"title": "T", "dueDate": "2026-02-18T17:00:00-05:00"}

    @pytest.mark.asyncio
    async def test_create_task_without_contact_uses_location(self, client):
        await tasks.create_task(client, {"title": "T", "dueDateTime": "2026-02-18T17:00:00-05:00"})

        assert client.calls[0]["path"] == "/tasks"
        assert client.calls[0]["body"]["locationId"] == "LOC1"

    @pytest.mark.asyncio
    async def test_list_overdue_tasks(self, client):
        await tasks.list_tasks(client, {"dueWindow": "overdue", "limit": 3})

        assert client.calls[0]["query"] == {"locationId": "LOC1", "status": "pending", "limit": 3}

    @pytest.mark.asyncio
    async def test_complete_task(self, client):
        result = await tasks.complete_task(client, {"taskId": "t9"})

        assert result["success"] is True
        assert client.calls[0]["path"] == "/tasks/t9/complete"
        assert client.calls[0]["method"] == "PUT"
