"""Location tag tools."""

from typing import Any

from gateway.core.errors import InvalidParamsError
from gateway.tools.base import location_for, pluck
from gateway.tools.client import CrmClient


async def list_tags(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    location_id = location_for(client, args)
    response = await client.request("GET", f"/locations/{location_id}/tags")
    return {"tags": pluck(response.unwrap(), "tags", [])}


async def create_tag(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    location_id = location_for(client, args)
    if not args.get("name"):
        raise InvalidParamsError("name is required")

    response = await client.request(
        "POST", f"/locations/{location_id}/tags", body={"name": args["name"]}
    )
    return {"tag": response.unwrap() or None}


async def delete_tag(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    location_id = location_for(client, args)
    if not args.get("tagId"):
        raise InvalidParamsError("tagId is required")

    response = await client.request("DELETE", f"/locations/{location_id}/tags/{args['tagId']}")
    response.unwrap()
    return {"success": True}
