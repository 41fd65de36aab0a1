from civiclens.models.user import User
from civiclens.models.category import Category
from civiclens.models.issue import (
    Issue, IssueVote, IssueComment, IssueFollower,
    IssueStatus, IssuePriority, VoteType, STATUSES, PRIORITIES, VOTE_TYPES,
)

__all__ = [
    'User',
    'Category',
    'Issue',
    'IssueVote',
    'IssueComment',
    'IssueFollower',
    'IssueStatus',
    'IssuePriority',
    'VoteType',
    'STATUSES',
    'PRIORITIES',
    'VOTE_TYPES',
]
