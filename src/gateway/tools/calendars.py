"""Calendar and appointment tools."""

from datetime import datetime, timezone
from typing import Any

from gateway.core.errors import InvalidParamsError
from gateway.tools.base import location_for, pluck
from gateway.tools.client import CrmClient


def _require(args: dict[str, Any], *names: str) -> None:
    for name in names:
        if not args.get(name):
            raise InvalidParamsError(f"{name} is required")


def parse_epoch_ms(value: Any) -> int | None:
    """ISO-8601 string to epoch milliseconds, or None when unparseable."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        # Naive timestamps are read as UTC
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


async def list_calendars(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    location_id = location_for(client, args)
    response = await client.request("GET", "/calendars/", query={"locationId": location_id})
    return {"calendars": pluck(response.unwrap(), "calendars", [])}


async def free_slots(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    _require(args, "calendarId", "startDateTime", "endDateTime")
    location_for(client, args)

    start_ms = parse_epoch_ms(args["startDateTime"])
    end_ms = parse_epoch_ms(args["endDateTime"])
    if start_ms is None or end_ms is None:
        raise InvalidParamsError("startDateTime and endDateTime must be valid ISO strings")

    query: dict[str, Any] = {"startDate": start_ms, "endDate": end_ms}
    if args.get("timezone"):
        query["timezone"] = args["timezone"]

    response = await client.request(
        "GET", f"/calendars/{args['calendarId']}/free-slots", query=query
    )
    return {"slots": pluck(response.unwrap(), "slots", [])}


async def list_appointments(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    _require(args, "calendarId", "startDateTime", "endDateTime")
    location_id = location_for(client, args)

    query: dict[str, Any] = {
        "calendarId": args["calendarId"],
        "startDate": args["startDateTime"],
        "endDate": args["endDateTime"],
        "locationId": location_id,
    }
    if args.get("limit"):
        query["limit"] = args["limit"]

    response = await client.request("GET", "/calendars/events", query=query)
    return {"events": pluck(response.unwrap(), "events", [])}


async def create_appointment(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    """Create an appointment.

    Accepts ``startDateTime``/``endDateTime`` as well as the API's own
    ``startTime``/``endTime``; the former win when both are given. Unknown
    fields are passed through to the API.
    """
    _require(args, "calendarId", "contactId")
    if not args.get("startTime") and not args.get("startDateTime"):
        raise InvalidParamsError("startTime or startDateTime is required")
    location_id = location_for(client, args)

    passthrough = {
        key: value for key, value in args.items()
        if key not in {"startTime", "startDateTime", "endTime", "endDateTime", "locationId"}
    }
    appointment: dict[str, Any] = {
        **passthrough,
        "locationId": location_id,
        "startTime": args.get("startDateTime") or args.get("startTime"),
    }
    end_time = args.get("endDateTime") or args.get("endTime")
    if end_time:
        appointment["endTime"] = end_time

    response = await client.request("POST", "/calendars/events/appointments", body=appointment)
    return {"appointment": pluck(response.unwrap(), "appointment")}


async def reschedule_appointment(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    _require(args, "appointmentId", "newStartDateTime", "newEndDateTime")
    location_for(client, args)

    response = await client.request(
        "PUT",
        f"/appointments/{args['appointmentId']}",
        body={"startTime": args["newStartDateTime"], "endTime": args["newEndDateTime"]},
    )
    return {"appointment": pluck(response.unwrap(), "appointment")}


async def cancel_appointment(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    _require(args, "appointmentId")
    location_id = location_for(client, args)

    body: dict[str, Any] = {"locationId": location_id}
    if args.get("reasonCode"):
        body["reasonCode"] = args["reasonCode"]

    response = await client.request(
        "PUT", f"/appointments/{args['appointmentId']}/cancel", body=body
    )
    return {"success": True, "appointment": pluck(response.unwrap(), "appointment")}
