"""Tool catalog and allowlist.

The catalog binds each handler to a client; the allowlist is kept as a
separate structure and the registry exposes only their intersection.

Provides:
- ALLOWED_TOOLS: Names that may be exposed
- build_catalog: Tool definitions bound to a CrmClient
- build_registry: ToolRegistry over the catalog and allowlist
"""

from functools import partial
from typing import Any

from gateway.tools import calendars, contacts, conversations, locations, tasks
from gateway.tools.base import ToolCategory, ToolDefinition, ToolRegistry
from gateway.tools.client import CrmClient

ALLOWED_TOOLS = frozenset({
    "contacts_search",
    "contacts_upsert",
    "contacts_update_status",
    "calendars_list",
    "calendar_free_slots",
    "calendar_list_appointments",
    "calendar_create_appointment",
    "calendar_reschedule_appointment",
    "calendar_cancel_appointment",
    "conversations_list_threads",
    "conversations_get_thread",
    "conversations_send_message",
    "conversations_send_new_email",
    "conversations_report",
    "locations_tags_list",
    "locations_tags_create",
    "locations_tags_delete",
    "tasks_list",
    "tasks_create",
    "tasks_complete",
})

READ = ToolCategory.READ
WRITE = ToolCategory.WRITE

STRING = {"type": "string"}
NUMBER = {"type": "number"}
STRING_LIST = {"type": "array", "items": {"type": "string"}}
CHANNEL = {"type": "string", "enum": ["email", "sms"]}


def _schema(properties: dict[str, Any], required: list[str] | None = None, strict: bool = True) -> dict:
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if strict:
        schema["additionalProperties"] = False
    if required is not None:
        schema["required"] = required
    return schema


def build_catalog(client: CrmClient) -> list[ToolDefinition]:
    """All tool definitions, with handlers bound to ``client``."""

    def tool(name, description, category, handler, schema, method="GET", endpoint=""):
        return ToolDefinition(
            name=name,
            description=description,
            category=category,
            input_schema=schema,
            handler=partial(handler, client),
            http_method=method,
            endpoint=endpoint,
        )

    return [
        tool(
            "contacts_search", "Search contacts by query", READ, contacts.search,
            _schema({"query": STRING, "pageLimit": NUMBER, "limit": NUMBER}, ["query"]),
            "POST", "/contacts/search",
        ),
        tool(
            "contacts_upsert", "Create or update a contact", WRITE, contacts.upsert,
            _schema(
                {
                    "firstName": STRING,
                    "lastName": STRING,
                    "phone": STRING,
                    "email": STRING,
                    "tags": STRING_LIST,
                },
                ["firstName", "lastName"],
            ),
            "POST", "/contacts or /contacts/{id}",
        ),
        tool(
            "contacts_update_status", "Update tags/stage for a contact", WRITE,
            contacts.update_status,
            _schema(
                {
                    "contactId": STRING,
                    "addTags": STRING_LIST,
                    "removeTags": STRING_LIST,
                    "stageId": STRING,
                },
                ["contactId"],
            ),
            "PUT", "/contacts/{contactId}",
        ),
        tool(
            "calendars_list", "List calendars for a location", READ, calendars.list_calendars,
            _schema({"locationId": STRING}),
            "GET", "/calendars/",
        ),
        tool(
            "calendar_free_slots", "List available free slots for a calendar", READ,
            calendars.free_slots,
            _schema(
                {
                    "calendarId": STRING,
                    "startDateTime": STRING,
                    "endDateTime": STRING,
                    "timezone": STRING,
                    "locationId": STRING,
                },
                ["calendarId", "startDateTime", "endDateTime"],
            ),
            "GET", "/calendars/{calendarId}/free-slots",
        ),
        tool(
            "calendar_list_appointments", "List appointments in a calendar window", READ,
            calendars.list_appointments,
            _schema(
                {
                    "calendarId": STRING,
                    "startDateTime": STRING,
                    "endDateTime": STRING,
                    "limit": NUMBER,
                },
                ["calendarId", "startDateTime", "endDateTime"],
            ),
            "GET", "/calendars/events",
        ),
        tool(
            "calendar_create_appointment", "Create an appointment", WRITE,
            calendars.create_appointment,
            _schema(
                {
                    "calendarId": STRING,
                    "contactId": STRING,
                    "title": STRING,
                    "startDateTime": STRING,
                    "endDateTime": STRING,
                },
                ["calendarId", "contactId", "title", "startDateTime", "endDateTime"],
            ),
            "POST", "/calendars/events/appointments",
        ),
        tool(
            "calendar_reschedule_appointment", "Reschedule an appointment", WRITE,
            calendars.reschedule_appointment,
            _schema(
                {"appointmentId": STRING, "newStartDateTime": STRING, "newEndDateTime": STRING},
                ["appointmentId", "newStartDateTime", "newEndDateTime"],
            ),
            "PUT", "/appointments/{id}",
        ),
        tool(
            "calendar_cancel_appointment", "Cancel an appointment", WRITE,
            calendars.cancel_appointment,
            _schema({"appointmentId": STRING, "reasonCode": STRING}, ["appointmentId"]),
            "PUT", "/appointments/{id}/cancel",
        ),
        tool(
            "conversations_list_threads", "List recent threads for a channel", READ,
            conversations.list_threads,
            _schema({"channel": CHANNEL, "unreadOnly": {"type": "boolean"}, "limit": NUMBER}),
            "GET", "/conversations/search",
        ),
        tool(
            "conversations_get_thread", "Fetch messages for a thread", READ,
            conversations.get_thread,
            _schema({"threadId": STRING, "limitMessages": NUMBER}, ["threadId"]),
            "GET", "/conversations/{threadId}",
        ),
        tool(
            "conversations_send_message", "Send a message into an existing thread", WRITE,
            conversations.send_message,
            _schema(
                {"threadId": STRING, "message": STRING, "channel": CHANNEL},
                ["threadId", "message"],
            ),
            "POST", "/conversations/messages",
        ),
        tool(
            "conversations_send_new_email", "Start a new email thread (outbound email)", WRITE,
            conversations.send_new_email,
            _schema(
                {
                    "contactId": STRING,
                    "email": STRING,
                    "subject": STRING,
                    "message": STRING,
                    "locationId": STRING,
                },
                ["message"],
            ),
            "POST", "/conversations/messages",
        ),
        tool(
            "conversations_report",
            "Get conversations report summary for a location (uses API report if "
            "available, otherwise derives from conversations search)",
            READ, conversations.report,
            _schema(
                {
                    "locationId": STRING,
                    "startDate": STRING,
                    "endDate": STRING,
                    "timezone": STRING,
                    "limit": NUMBER,
                    "channel": CHANNEL,
                },
                [],
            ),
            "GET", "/conversations/reports",
        ),
        tool(
            "locations_tags_list", "List tags for a location", READ, locations.list_tags,
            _schema({"locationId": STRING}, []),
            "GET", "/locations/{id}/tags",
        ),
        tool(
            "locations_tags_create", "Create a tag for a location", WRITE, locations.create_tag,
            _schema({"locationId": STRING, "name": STRING}, ["name"]),
            "POST", "/locations/{id}/tags",
        ),
        tool(
            "locations_tags_delete", "Delete a tag for a location", WRITE, locations.delete_tag,
            _schema({"locationId": STRING, "tagId": STRING}, ["tagId"]),
            "DELETE", "/locations/{id}/tags/{tagId}",
        ),
        tool(
            "tasks_list", "List tasks by due window", READ, tasks.list_tasks,
            _schema(
                {"dueWindow": {"type": "string", "enum": ["overdue", "today", "next7"]}, "limit": NUMBER}
            ),
            "GET", "/tasks",
        ),
        tool(
            "tasks_create", "Create a task", WRITE, tasks.create_task,
            _schema(
                {
                    "title": STRING,
                    "dueDateTime": STRING,
                    "contactId": STRING,
                    "description": STRING,
                    "assignedTo": STRING,
                    "locationId": STRING,
                    "priority": {"type": "string", "enum": ["low", "normal", "high"]},
                },
                ["title", "dueDateTime"],
            ),
            "POST", "/contacts/{contactId}/tasks",
        ),
        tool(
            "tasks_complete", "Complete task", WRITE, tasks.complete_task,
            _schema({"taskId": STRING, "locationId": STRING}, ["taskId"], strict=False),
            "PUT", "/tasks/{taskId}/complete",
        ),
    ]


def build_registry(client: CrmClient) -> ToolRegistry:
    return ToolRegistry(build_catalog(client), ALLOWED_TOOLS)
