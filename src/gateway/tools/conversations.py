"""Conversation tools: threads, messages and the conversations report."""

import re
from collections import Counter
from typing import Any

import structlog

from gateway.core.errors import InvalidParamsError
from gateway.tools.base import location_for, pluck
from gateway.tools.calendars import parse_epoch_ms
from gateway.tools.client import ApiResponse, CrmClient

logger = structlog.get_logger()

CHANNELS = frozenset({"email", "sms"})
REPORT_ENDPOINT = "/conversations/reports"
ALTERNATE_REPORT_ENDPOINTS = ("/conversations/report", "/conversations/reports/summary")
DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
REPORT_SAMPLE_SIZE = 5


def _channel(args: dict[str, Any]) -> str | None:
    channel = args.get("channel")
    return channel if channel in CHANNELS else None


async def list_threads(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    query: dict[str, Any] = {"locationId": location_for(client, args)}
    if _channel(args):
        query["channel"] = _channel(args)
    if args.get("unreadOnly") is True:
        query["unreadOnly"] = True
    if args.get("limit"):
        query["limit"] = args["limit"]

    response = await client.request("GET", "/conversations/search", query=query)
    return {"conversations": pluck(response.unwrap(), "conversations", [])}


async def get_thread(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    thread_id = args.get("threadId")
    if not thread_id:
        raise InvalidParamsError("threadId is required")

    query: dict[str, Any] = {"locationId": location_for(client, args)}
    if args.get("limitMessages"):
        query["limit"] = args["limitMessages"]

    response = await client.request("GET", f"/conversations/{thread_id}", query=query)
    return {"conversation": pluck(response.unwrap(), "conversation")}


async def send_message(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    if not args.get("threadId"):
        raise InvalidParamsError("threadId is required")
    if not args.get("message"):
        raise InvalidParamsError("message is required")

    body: dict[str, Any] = {
        "conversationId": args["threadId"],
        "message": args["message"],
        "locationId": location_for(client, args),
    }
    if _channel(args):
        body["channel"] = _channel(args)

    response = await client.request("POST", "/conversations/messages", body=body)
    return {"message": pluck(response.unwrap(), "message")}


async def send_new_email(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    """Start a new outbound email thread to a contact id or an address."""
    contact_id = args.get("contactId")
    email = args.get("email")
    message = args.get("message")
    if not contact_id and not email:
        raise InvalidParamsError("contactId or email is required")
    if not message:
        raise InvalidParamsError("message is required")

    body: dict[str, Any] = {
        "locationId": location_for(client, args),
        "type": "Email",
        "message": message,
        "body": message,
        "html": message,
        "channel": "email",
    }
    if contact_id:
        body["contactId"] = contact_id
    if email:
        body["email"] = email
    if args.get("subject"):
        body["subject"] = args["subject"]

    response = await client.request("POST", "/conversations/messages", body=body)
    return {"message": pluck(response.unwrap(), "message")}


def _day_bound(value: Any, end: bool) -> Any:
    if isinstance(value, str) and DATE_ONLY.match(value):
        return f"{value}T23:59:59.999Z" if end else f"{value}T00:00:00.000Z"
    return value


def _epoch_query(location_id: str, args: dict[str, Any], start_key: str, end_key: str) -> dict:
    query: dict[str, Any] = {"locationId": location_id}
    start_ms = parse_epoch_ms(_day_bound(args.get("startDate"), end=False))
    end_ms = parse_epoch_ms(_day_bound(args.get("endDate"), end=True))
    if start_ms is not None:
        query[start_key] = start_ms
    if end_ms is not None:
        query[end_key] = end_ms
    if args.get("timezone"):
        query["timezone"] = args["timezone"]
    return query


def summarize_conversations(conversations: list[Any]) -> dict[str, Any]:
    """Counts by channel and status plus unread total, from a conversation search."""
    by_channel: Counter = Counter()
    by_status: Counter = Counter()
    unread = 0
    for convo in conversations:
        convo = convo if isinstance(convo, dict) else {}
        by_channel[convo.get("channel") or convo.get("type") or "unknown"] += 1
        by_status[convo.get("status") or "unknown"] += 1
        unread_count = convo.get("unreadCount")
        if (isinstance(unread_count, (int, float)) and unread_count > 0) or convo.get("unread") is True:
            unread += 1
    return {
        "total": len(conversations),
        "unread": unread,
        "byChannel": dict(by_channel),
        "byStatus": dict(by_status),
        "sample": conversations[:REPORT_SAMPLE_SIZE],
    }


async def report(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    """Conversations report for a location.

    Tries the report endpoint as asked. On a 400 with dates set, retries with
    epoch-millisecond ``startDate``/``endDate``, then with ``start``/``end``,
    then the alternate report paths. Last resort is a summary built from a
    conversation search. When everything fails the last report error is raised.
    """
    location_id = location_for(client, args)
    channel = _channel(args)

    query: dict[str, Any] = {"locationId": location_id}
    for key in ("startDate", "endDate", "timezone", "limit"):
        if args.get(key):
            query[key] = args[key]
    if channel:
        query["channel"] = channel

    response = await client.request("GET", REPORT_ENDPOINT, query=query)
    if response.ok:
        return {"report": response.data or {}}

    last_failure: ApiResponse = response
    if response.status == 400 and (args.get("startDate") or args.get("endDate")):
        retry = await client.request(
            "GET", REPORT_ENDPOINT, query=_epoch_query(location_id, args, "startDate", "endDate")
        )
        if retry.ok:
            return {"report": retry.data or {}, "_retry": True, "_format": "epoch_ms"}

        start_end_query = _epoch_query(location_id, args, "start", "end")
        retry = await client.request("GET", REPORT_ENDPOINT, query=start_end_query)
        if retry.ok:
            return {"report": retry.data or {}, "_retry": True, "_format": "epoch_ms_start_end"}

        for endpoint in ALTERNATE_REPORT_ENDPOINTS:
            alternate = await client.request("GET", endpoint, query=start_end_query)
            if alternate.ok:
                return {
                    "report": alternate.data or {},
                    "_retry": True,
                    "_format": "epoch_ms_start_end",
                    "_endpoint": endpoint,
                }
        last_failure = retry

    search_query: dict[str, Any] = {"locationId": location_id}
    if args.get("limit"):
        search_query["limit"] = args["limit"]
    if channel:
        search_query["channel"] = channel
    search = await client.request("GET", "/conversations/search", query=search_query)
    if search.ok:
        logger.info("conversations_report_fallback", status=last_failure.status)
        conversations = pluck(search.data, "conversations", [])
        if not isinstance(conversations, list):
            conversations = []
        return {"report": summarize_conversations(conversations), "_fallback": "conversations_search"}

    raise last_failure.to_error()
