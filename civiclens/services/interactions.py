"""
Votes, comments, follows and views on an issue.

Every mutation takes the issue row lock, changes the underlying collection,
recomputes the derived counters with :meth:`Issue.sync_stats` and commits
once, so the change and its counters land in the same transaction.
"""

import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from civiclens import db
from civiclens.models.issue import Issue, IssueComment, IssueFollower, IssueVote
from civiclens.utils.exceptions import NotFound, PermissionDenied, PersistenceFailure
from civiclens.utils.validators import validate_comment_content, validate_uuid, validate_vote_type

logger = logging.getLogger(__name__)


def get_issue(issue_id, lock=False) -> Issue:
    # a locked read overwrites whatever counters the session already holds
    issue = db.session.get(
        Issue, validate_uuid(issue_id, 'Issue ID'),
        with_for_update=lock or None, populate_existing=lock,
    )
    if issue is None:
        raise NotFound("Issue not found")
    return issue


def _commit(issue, action):
    issue.sync_stats()
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Failed to %s on issue %s: %s", action, issue.issue_id, e)
        raise PersistenceFailure(f"Failed to {action}") from e


def toggle_vote(issue_id, user_id, vote_type):
    """Cast, switch or withdraw a vote.

    Voting the type already held withdraws it; voting the other type switches.
    Returns the issue and the caller's vote type afterwards (None when withdrawn).
    """
    vote_type = validate_vote_type(vote_type)
    user_id = validate_uuid(user_id, 'User ID')
    issue = get_issue(issue_id, lock=True)

    vote = issue.vote_of(user_id)
    if vote is None:
        issue.votes.append(IssueVote(user_id=user_id, vote_type=vote_type))
        current = vote_type
    elif vote.vote_type == vote_type:
        issue.votes.remove(vote)
        current = None
    else:
        vote.vote_type = vote_type
        current = vote_type

    _commit(issue, 'record vote')
    logger.info("Vote on issue %s by %s is now %s", issue.issue_id, user_id, current)
    return issue, current


def remove_vote(issue_id, user_id):
    """Withdraw the caller's vote; returns whether one was held."""
    user_id = validate_uuid(user_id, 'User ID')
    issue = get_issue(issue_id, lock=True)

    vote = issue.vote_of(user_id)
    if vote is None:
        return issue, False

    issue.votes.remove(vote)
    _commit(issue, 'remove vote')
    return issue, True


def add_comment(issue_id, user_id, text, is_internal=False):
    text = validate_comment_content(text)
    user_id = validate_uuid(user_id, 'User ID')
    issue = get_issue(issue_id, lock=True)

    comment = IssueComment(user_id=user_id, text=text, is_internal=bool(is_internal))
    issue.comments.append(comment)

    _commit(issue, 'add comment')
    return issue, comment


def delete_comment(issue_id, comment_id, user):
    """Delete a comment; only its author or an admin may."""
    comment_id = validate_uuid(comment_id, 'Comment ID')
    issue = get_issue(issue_id, lock=True)

    comment = next((c for c in issue.comments if c.comment_id == comment_id), None)
    if comment is None:
        raise NotFound("Comment not found")
    if comment.user_id != user.user_id and not user.is_admin:
        raise PermissionDenied("You can only delete your own comments")

    issue.comments.remove(comment)
    _commit(issue, 'delete comment')
    return issue


def toggle_follow(issue_id, user_id):
    """Follow or unfollow; returns the issue and whether the caller now follows it."""
    user_id = validate_uuid(user_id, 'User ID')
    issue = get_issue(issue_id, lock=True)

    entry = issue.follower_entry(user_id)
    if entry is None:
        issue.followers.append(IssueFollower(user_id=user_id))
        following = True
    else:
        issue.followers.remove(entry)
        following = False

    _commit(issue, 'update follow')
    return issue, following


def record_view(issue):
    """Count one detail view. A failed write is logged, never raised."""
    try:
        db.session.execute(
            update(Issue)
            .where(Issue.issue_id == issue.issue_id)
            .values(views=Issue.views + 1, stats_views=Issue.views + 1)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning("Failed to increment views for issue %s: %s", issue.issue_id, e)
        return False

    db.session.refresh(issue)
    return True


def vote_status(issue_id, user_id):
    issue = get_issue(issue_id)
    vote = issue.vote_of(validate_uuid(user_id, 'User ID'))
    return {
        'has_voted': vote is not None,
        'vote_type': vote.vote_type if vote else None,
        'upvotes': issue.stats_upvotes,
        'downvotes': issue.stats_downvotes,
    }


def follow_status(issue_id, user_id):
    issue = get_issue(issue_id)
    return {
        'is_following': issue.follower_entry(validate_uuid(user_id, 'User ID')) is not None,
        'follower_count': issue.stats_follower_count,
    }
