"""Task tools."""

from typing import Any

from gateway.core.errors import InvalidParamsError
from gateway.tools.base import location_for, pluck
from gateway.tools.client import CrmClient

PRIORITIES = frozenset({"low", "normal", "high"})


async def list_tasks(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    query: dict[str, Any] = {"locationId": location_for(client, args)}
    # TODO: map the today/next7 windows to due-date filters once the API exposes them
    if args.get("dueWindow") == "overdue":
        query["status"] = "pending"
    if args.get("limit"):
        query["limit"] = args["limit"]

    response = await client.request("GET", "/tasks", query=query)
    return {"tasks": pluck(response.unwrap(), "tasks", [])}


async def create_task(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    """Create a task, on the contact when ``contactId`` is given."""
    if not args.get("title"):
        raise InvalidParamsError("title is required")
    if not args.get("dueDateTime"):
        raise InvalidParamsError("dueDateTime is required")

    contact_id = args.get("contactId")
    task: dict[str, Any] = {"title": args["title"], "dueDate": args["dueDateTime"]}
    if args.get("priority") in PRIORITIES:
        task["priority"] = args["priority"]
    if args.get("description"):
        task["description"] = args["description"]
    if args.get("assignedTo"):
        task["assignedTo"] = args["assignedTo"]

    if contact_id:
        endpoint = f"/contacts/{contact_id}/tasks"
    else:
        endpoint = "/tasks"
        task["locationId"] = location_for(client, args)

    response = await client.request("POST", endpoint, body=task)
    return {"task": pluck(response.unwrap(), "task")}


async def complete_task(client: CrmClient, args: dict[str, Any]) -> dict[str, Any]:
    task_id = args.get("taskId")
    if not task_id:
        raise InvalidParamsError("taskId is required")

    response = await client.request(
        "PUT", f"/tasks/{task_id}/complete", body={"locationId": location_for(client, args)}
    )
    return {"success": True, "task": pluck(response.unwrap(), "task")}
