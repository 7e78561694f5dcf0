from enum import Enum


class Category(str, Enum):
    BUG = "bug"
    FEATURE = "feature"
    IMPROVEMENT = "improvement"


class SortOrder(str, Enum):
    RECENT = "recent"
    UPVOTES = "upvotes"


class VoteDirection(str, Enum):
    UPVOTE = "upvote"
    # Accepted by the schema but never written: the only vote action is the upvote toggle.
    DOWNVOTE = "downvote"


class VoteAction(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
