"""
Event API routes - creation, membership, lifecycle and administration
"""

from fastapi import APIRouter, Depends, Request

from app.schemas.event import (
    AdministratorRequest,
    BookmarksRequest,
    EventCreate,
    EventResponse,
    ItemConfigurationRequest,
    JoinRequest,
    ProfileUpdate,
    RatingConfigurationRequest,
    StateTransitionRequest,
    UserResponse,
)
from app.services.container import Services, get_services
from app.services.state_machine import valid_targets
from app.utils.responses import success_response
from app.utils.security import Caller, get_caller, get_client_ip, require_admin

router = APIRouter()

@router.post("/events")
def create_event(
    event_data: EventCreate,
    services: Services = Depends(get_services)
):
    """Create a new event; the creator becomes its owner"""
    record = services.events.create_event(
        name=event_data.name,
        owner_email=event_data.owner_email,
        number_of_items=event_data.number_of_items,
        max_rating=event_data.max_rating,
    )
    session = services.sessions.issue(record.id, record.owner)
    
    return success_response(
        message="Event created successfully",
        data={
            "event": EventResponse.from_record(record, include_admin_fields=True),
            "token": session.token
        },
        status_code=201
    )

@router.post("/events/{event_id}/join")
def join_event(
    event_id: str,
    join_data: JoinRequest,
    request: Request,
    services: Services = Depends(get_services)
):
    """Verify the PIN, register the user and issue an event-scoped token"""
    user = services.events.join_event(event_id, join_data.pin, join_data.email, client=get_client_ip(request))
    session = services.sessions.issue(event_id, user.email)
    
    return success_response(
        message="Joined event",
        data={
            "user": UserResponse.from_record(user),
            "token": session.token
        }
    )

@router.get("/events/{event_id}")
def get_event(caller: Caller = Depends(get_caller)):
    """Event view for a member; administrators also see PIN and administrators"""
    record = caller.record
    return success_response(
        message="Event retrieved",
        data={
            "event": EventResponse.from_record(record, include_admin_fields=caller.is_administrator),
            "is_administrator": caller.is_administrator,
            "is_owner": caller.is_owner,
            "valid_transitions": [s.value for s in valid_targets(record.state)]
        }
    )

@router.delete("/events/{event_id}")
def delete_event(
    event_id: str,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    """Delete the event and everything scoped to it (owner only)"""
    services.events.delete_event(event_id, caller.email)
    return success_response(message="Event deleted successfully")

@router.patch("/events/{event_id}/state")
def transition_state(
    event_id: str,
    transition: StateTransitionRequest,
    caller: Caller = Depends(require_admin),
    services: Services = Depends(get_services)
):
    """Change lifecycle state; fails with a conflict if the state moved on"""
    record = services.state_machine.transition(
        event_id,
        caller.email,
        to_state=transition.to_state,
        expected_state=transition.expected_state,
    )
    return success_response(
        message=f"Event state changed to {record.state.value}",
        data=EventResponse.from_record(record, include_admin_fields=True)
    )

@router.post("/events/{event_id}/pin")
def regenerate_pin(
    event_id: str,
    caller: Caller = Depends(require_admin),
    services: Services = Depends(get_services)
):
    record = services.events.regenerate_pin(event_id, caller.email)
    return success_response(
        message="PIN regenerated successfully",
        data={"pin": record.pin, "pin_generated_at": record.pin_generated_at}
    )

# -------- administrators --------

@router.get("/events/{event_id}/administrators")
def list_administrators(
    event_id: str,
    caller: Caller = Depends(require_admin),
    services: Services = Depends(get_services)
):
    admins = services.events.list_administrators(event_id, caller.email)
    return success_response(message="Administrators retrieved", data={"administrators": admins, "owner": caller.record.owner})

@router.post("/events/{event_id}/administrators")
def add_administrator(
    event_id: str,
    admin_data: AdministratorRequest,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    admins = services.events.add_administrator(event_id, caller.email, admin_data.email)
    return success_response(message="Administrator added", data={"administrators": admins}, status_code=201)

@router.delete("/events/{event_id}/administrators/{email}")
def remove_administrator(
    event_id: str,
    email: str,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    admins = services.events.remove_administrator(event_id, caller.email, email)
    return success_response(message="Administrator removed", data={"administrators": admins})

# -------- configuration --------

@router.patch("/events/{event_id}/item-configuration")
def update_item_configuration(
    event_id: str,
    config_data: ItemConfigurationRequest,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    result = services.events.update_item_configuration(
        event_id,
        caller.email,
        number_of_items=config_data.number_of_items,
        excluded_item_ids=config_data.excluded_item_ids,
    )
    config = result.configuration
    return success_response(
        message=result.warning or "Item configuration updated",
        data={
            "number_of_items": config.number_of_items,
            "excluded_item_ids": sorted(config.excluded_item_ids),
            "warning": result.warning
        }
    )

@router.patch("/events/{event_id}/rating-configuration")
def update_rating_configuration(
    event_id: str,
    config_data: RatingConfigurationRequest,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    config = services.events.update_rating_configuration(
        event_id,
        caller.email,
        max_rating=config_data.max_rating,
        ratings=None if config_data.ratings is None else [r.model_dump() for r in config_data.ratings],
        expected_updated_at=config_data.expected_updated_at,
    )
    return success_response(
        message="Rating configuration updated",
        data={
            "max_rating": config.max_rating,
            "ratings": [{"value": r.value, "label": r.label, "color": r.color} for r in config.ratings]
        }
    )

# -------- profile --------

@router.get("/events/{event_id}/profile")
def get_profile(
    event_id: str,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    user = services.events.get_user_profile(event_id, caller.email)
    return success_response(message="Profile retrieved", data=UserResponse.from_record(user))

@router.patch("/events/{event_id}/profile")
def update_profile(
    event_id: str,
    profile: ProfileUpdate,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    user = services.events.update_profile(event_id, caller.email, profile.name)
    return success_response(message="Profile updated", data=UserResponse.from_record(user))

@router.put("/events/{event_id}/bookmarks")
def save_bookmarks(
    event_id: str,
    bookmarks: BookmarksRequest,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    saved = services.events.save_bookmarks(event_id, caller.email, bookmarks.item_ids)
    return success_response(message="Bookmarks saved", data={"bookmarks": saved})
