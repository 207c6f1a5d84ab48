"""
Rating API routes - submissions, listings, bulk deletions and similar users
"""

from fastapi import APIRouter, Depends

from app.core.exceptions import InsufficientDataError
from app.schemas.rating import RatingResponse, RatingSubmit, SimilarUserResponse
from app.services.container import Services, get_services
from app.utils.responses import success_response
from app.utils.security import Caller, get_caller, require_admin

router = APIRouter()

@router.get("/events/{event_id}/ratings")
def list_ratings(
    event_id: str,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    """Own ratings for a user, every rating for an administrator"""
    ratings = services.ratings.list_ratings(event_id, caller.email)
    return success_response(
        message="Ratings retrieved",
        data=[RatingResponse.from_record(r) for r in ratings]
    )

@router.post("/events/{event_id}/ratings")
def submit_rating(
    event_id: str,
    rating_data: RatingSubmit,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    """Create or replace the caller's rating for an item"""
    rating = services.ratings.submit_rating(
        event_id,
        caller.email,
        item_id=rating_data.item_id,
        rating=rating_data.rating,
        note=rating_data.note,
    )
    return success_response(message="Rating saved", data=RatingResponse.from_record(rating))

@router.delete("/events/{event_id}/ratings/{item_id}")
def delete_rating(
    event_id: str,
    item_id: int,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    services.ratings.delete_rating(event_id, caller.email, item_id)
    return success_response(message="Rating deleted")

@router.delete("/events/{event_id}/ratings")
def delete_all_ratings(
    event_id: str,
    caller: Caller = Depends(require_admin),
    services: Services = Depends(get_services)
):
    count = services.ratings.delete_all_ratings(event_id, caller.email)
    return success_response(message=f"{count} ratings deleted", data={"deleted": count})

@router.delete("/events/{event_id}/users/{email}")
def delete_user(
    event_id: str,
    email: str,
    caller: Caller = Depends(require_admin),
    services: Services = Depends(get_services)
):
    removed = services.ratings.delete_user(event_id, caller.email, email)
    services.sessions.revoke_user(event_id, email.strip().lower())
    return success_response(message="User deleted", data={"ratings_deleted": removed})

@router.delete("/events/{event_id}/users")
def delete_all_non_admin_users(
    event_id: str,
    caller: Caller = Depends(require_admin),
    services: Services = Depends(get_services)
):
    removed = services.ratings.delete_all_non_admin_users(event_id, caller.email)
    for email in removed:
        services.sessions.revoke_user(event_id, email)
    return success_response(message=f"{len(removed)} users deleted", data={"deleted": len(removed)})

@router.get("/events/{event_id}/dashboard")
def get_dashboard(
    event_id: str,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    return success_response(message="Dashboard retrieved", data=services.dashboard.get_dashboard(event_id))

@router.get("/events/{event_id}/similar-users")
def find_similar_users(
    event_id: str,
    caller: Caller = Depends(get_caller),
    services: Services = Depends(get_services)
):
    """Top matches for the caller; ``available`` is false until there is enough data"""
    try:
        matches = services.similarity.find_similar_users(event_id, caller.email)
    except InsufficientDataError as e:
        return success_response(
            message=e.message,
            data={"available": False, "similar_users": [], "reason": e.error_code}
        )
    
    return success_response(
        message="No similar users found" if not matches else "Similar users found",
        data={
            "available": True,
            "similar_users": [SimilarUserResponse.from_result(m) for m in matches]
        }
    )
