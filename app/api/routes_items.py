"""
Item API routes - registration, listing, id assignment and details
"""

from fastapi import APIRouter, Depends

from app.schemas.item import ItemAssign, ItemRegister, ItemResponse
from app.services.container import Services, get_services
from app.utils.responses import success_response
from app.utils.security import Caller, get_caller

router = APIRouter()

@router.post("/events/{event_id}/items")
def register_item(
    event_id: str,
    item_data: ItemRegister,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    item = services.items.register_item(
        event_id,
        caller.email,
        name=item_data.name,
        price=item_data.price,
        description=item_data.description,
    )
    return success_response(message="Item registered", data=ItemResponse.from_record(item), status_code=201)

@router.get("/events/{event_id}/items")
def list_items(
    event_id: str,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    items = services.items.list_items(event_id, caller.email)
    return success_response(message="Items retrieved", data=[ItemResponse.from_record(i) for i in items])

@router.patch("/events/{event_id}/items/{registration_id}/item-id")
def assign_item_id(
    event_id: str,
    registration_id: str,
    assignment: ItemAssign,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    item = services.items.assign_item_id(event_id, caller.email, registration_id, assignment.item_id)
    return success_response(message="Item ID updated", data=ItemResponse.from_record(item))

@router.get("/events/{event_id}/items/by-item-id/{item_id}")
def get_item_details(
    event_id: str,
    item_id: int,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    item = services.items.get_item_details(event_id, item_id, caller.email)
    return success_response(message="Item retrieved", data=ItemResponse.from_record(item))

@router.delete("/events/{event_id}/items/{registration_id}")
def delete_item(
    event_id: str,
    registration_id: str,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    services.items.delete_item(event_id, caller.email, registration_id)
    return success_response(message="Item deleted")
