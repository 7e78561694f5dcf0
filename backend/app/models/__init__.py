from backend.app.models.feedback import FeedbackItem, VoteRecord, feedback_search

__all__ = [
    "FeedbackItem",
    "VoteRecord",
    "feedback_search",
]
