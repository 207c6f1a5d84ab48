"""
System API routes - requires the root token
"""

from fastapi import APIRouter, Depends

from app.models.records import EventState
from app.services.container import Services, get_services
from app.utils.security import verify_root_token
from app.utils.responses import success_response

router = APIRouter()

@router.get("/events")
def list_events(
    services: Services = Depends(get_services),
    token: str = Depends(verify_root_token)
):
    """List every event with summary counts"""
    events = services.events.list_events()
    return success_response(
        message="Events retrieved",
        data=[
            {
                "id": e.id,
                "name": e.name,
                "state": e.state.value,
                "owner": e.owner,
                "created_at": e.created_at,
                "total_users": len(e.users),
                "total_ratings": len(e.ratings),
                "total_items": len(e.items)
            }
            for e in events
        ]
    )

@router.get("/stats")
def system_stats(
    services: Services = Depends(get_services),
    token: str = Depends(verify_root_token)
):
    events = services.events.list_events()
    by_state = {s.value: sum(1 for e in events if e.state == s) for s in EventState}
    return success_response(
        message="System statistics retrieved",
        data={
            "total_events": len(events),
            "events_by_state": by_state,
            "total_users": sum(len(e.users) for e in events),
            "total_ratings": sum(len(e.ratings) for e in events)
        }
    )

@router.delete("/events/{event_id}")
def delete_event(
    event_id: str,
    services: Services = Depends(get_services),
    token: str = Depends(verify_root_token)
):
    """Delete any event regardless of owner"""
    services.events.force_delete_event(event_id)
    return success_response(message="Event deleted successfully")
