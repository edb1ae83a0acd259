"""Contact tools: search, upsert and status update."""

from typing import Any

from gateway.core.errors import InvalidParamsError
from gateway.tools.base import location_for, pluck
from gateway.tools.client import CrmClient

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100


def _page_limit(args: dict[str, Any]) -> int:
    # ``limit`` is accepted as a legacy alias; the API itself only takes pageLimit.
    raw = args.get("pageLimit")
    if raw is None:
        raw = args.get("limit")
    if raw is None:
        raw = DEFAULT_PAGE_LIMIT

    error = InvalidParamsError("pageLimit must be a positive integer between 1 and 100")
    if isinstance(raw, bool):
        raise error
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise error from None
    if not value.is_integer() or not 1 <= value <= MAX_PAGE_LIMIT:
        raise error
    return int(value)


async def search(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    query = args.get("query")
    if not query:
        raise InvalidParamsError("query parameter is required")
    location_id = location_for(client, args)

    response = await client.request(
        "POST",
        "/contacts/search",
        body={"locationId": location_id, "query": query, "pageLimit": _page_limit(args)},
    )
    return {"contacts": pluck(response.unwrap(), "contacts", [])}


async def _find_existing(client: CrmClient, location_id: str, **criteria: str) -> dict | None:
    response = await client.request(
        "POST", "/contacts/search", body={"locationId": location_id, **criteria}
    )
    if not response.ok or not isinstance(response.data, dict):
        return None
    contacts = response.data.get("contacts") or []
    return contacts[0] if contacts else None


async def upsert(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    """Update the contact matching phone or email, or create a new one."""
    location_id = location_for(client, args)
    first_name = args.get("firstName")
    last_name = args.get("lastName")
    if not first_name or not last_name:
        raise InvalidParamsError("firstName and lastName are required")

    phone = args.get("phone")
    email = args.get("email")

    existing = None
    if phone:
        existing = await _find_existing(client, location_id, phone=phone)
    if existing is None and email:
        existing = await _find_existing(client, location_id, email=email)

    contact = {
        "name": f"{first_name} {last_name}".strip(),
        "firstName": first_name,
        "lastName": last_name,
        "phone": phone,
        "email": email,
        "locationId": location_id,
    }
    if isinstance(args.get("tags"), list):
        contact["tags"] = args["tags"]

    if existing is not None:
        response = await client.request("PUT", f"/contacts/{existing['id']}", body=contact)
        action = "updated"
    else:
        response = await client.request("POST", "/contacts", body=contact)
        action = "created"

    return {"contact": pluck(response.unwrap(), "contact"), "action": action}


async def update_status(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    contact_id = args.get("contactId")
    if not contact_id:
        raise InvalidParamsError("contactId is required")
    location_for(client, args)

    update: dict[str, Any] = {}
    if isinstance(args.get("addTags"), list):
        update["addTags"] = args["addTags"]
    if isinstance(args.get("removeTags"), list):
        update["removeTags"] = args["removeTags"]
    if "stageId" in args:
        update["stageId"] = args["stageId"]
    if not update:
        raise InvalidParamsError("addTags, removeTags, or stageId is required")

    response = await client.request("PUT", f"/contacts/{contact_id}", body=update)
    return {"contact": pluck(response.unwrap(), "contact")}
