from fastapi import APIRouter, Depends, status

from agent_portal.api.v1.routes.conversations import store_result_response
from agent_portal.core.auth import get_current_user
from agent_portal.db.database import get_feedback_collection
from agent_portal.models.feedback import FeedbackCreate
from agent_portal.services.feedback_service import submit_feedback

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def submit_feedback_endpoint(
    data: FeedbackCreate,
    current_user: dict = Depends(get_current_user),
    feedback=Depends(get_feedback_collection),
):
    result = await submit_feedback(feedback, current_user, data)
    response = store_result_response(result)
    if result.success:
        response.status_code = status.HTTP_201_CREATED
    return response
