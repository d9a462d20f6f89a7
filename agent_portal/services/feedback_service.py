import logging
from datetime import datetime

from pymongo.errors import PyMongoError

from agent_portal.models.conversation import StoreResult
from agent_portal.models.feedback import FeedbackCreate

logger = logging.getLogger(__name__)


async def submit_feedback(feedback, user: dict, data: FeedbackCreate) -> StoreResult:
    record = {
        "message_id": data.message_id,
        "conversation_id": data.conversation_id,
        "agent_id": data.agent_id,
        "rating": data.rating.value,
        "feedback_text": data.feedback_text,
        "user_id": str(user["_id"]),
        "created_at": datetime.utcnow(),
    }
    try:
        await feedback.insert_one(record)
    except PyMongoError as e:
        logger.error(f"Error inserting feedback: {e}")
        return StoreResult.failure("Failed to submit feedback", "database")
    return StoreResult.ok()
