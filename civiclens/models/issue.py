from civiclens import db
from datetime import datetime
from sqlalchemy import Uuid
import enum
import uuid

from civiclens.geo.index import register_spatial_indexes
from civiclens.geo.point import SpatialPoint


class IssueStatus(enum.Enum):
    """Enum for issue lifecycle states."""
    OPEN = 'open'
    IN_PROGRESS = 'in-progress'
    RESOLVED = 'resolved'
    CLOSED = 'closed'
    REJECTED = 'rejected'


class IssuePriority(enum.Enum):
    """Enum for issue priorities."""
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    URGENT = 'urgent'


class VoteType(enum.Enum):
    UPVOTE = 'upvote'
    DOWNVOTE = 'downvote'


STATUSES = [status.value for status in IssueStatus]
PRIORITIES = [priority.value for priority in IssuePriority]
VOTE_TYPES = [vote_type.value for vote_type in VoteType]


class Issue(db.Model):
    """A reported civic issue tied to a location.

    ``views`` and the vote/comment/follower collections are the source of
    truth. The ``stats_*`` columns are a cached projection of them and are
    only ever written by :meth:`sync_stats` or the atomic view increment.
    """

    __tablename__ = 'issues'

    # Primary fields
    issue_id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), default='open', nullable=False, index=True)
    priority = db.Column(db.String(20), default='medium', nullable=False)
    is_public = db.Column(db.Boolean, default=True, nullable=False)
    tags = db.Column(db.JSON, default=list, nullable=False)

    category_id = db.Column(Uuid, db.ForeignKey('categories.category_id'), nullable=False, index=True)
    reported_by_id = db.Column(Uuid, db.ForeignKey('users.user_id'), nullable=False, index=True)
    assigned_to_id = db.Column(Uuid, db.ForeignKey('users.user_id'), nullable=True, index=True)

    # Location data
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    address = db.Column(db.String(255), nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    resolved_at = db.Column(db.DateTime, nullable=True)

    views = db.Column(db.Integer, default=0, nullable=False)

    # Derived counters
    stats_upvotes = db.Column(db.Integer, default=0, nullable=False)
    stats_downvotes = db.Column(db.Integer, default=0, nullable=False)
    stats_comment_count = db.Column(db.Integer, default=0, nullable=False)
    stats_views = db.Column(db.Integer, default=0, nullable=False)
    stats_follower_count = db.Column(db.Integer, default=0, nullable=False)

    # Relationships
    category = db.relationship('Category', back_populates='issues')
    reported_by = db.relationship('User', foreign_keys=[reported_by_id])
    assigned_to = db.relationship('User', foreign_keys=[assigned_to_id])
    votes = db.relationship('IssueVote', back_populates='issue', cascade='all, delete-orphan')
    comments = db.relationship(
        'IssueComment', back_populates='issue', cascade='all, delete-orphan',
        order_by='IssueComment.created_at'
    )
    followers = db.relationship('IssueFollower', back_populates='issue', cascade='all, delete-orphan')

    __table_args__ = (
        db.Index('ix_issues_lat_lng', 'latitude', 'longitude'),
        db.Index('ix_issues_category_status', 'category_id', 'status'),
    )

    def __init__(self, title, description, category_id, reported_by_id, point: SpatialPoint, **kwargs):
        """Initialize issue with required fields."""
        self.title = title
        self.description = description
        self.category_id = category_id
        self.reported_by_id = reported_by_id
        self.latitude = point.latitude
        self.longitude = point.longitude

        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

        self.views = self.views or 0
        self.sync_stats()

    @property
    def point(self):
        if SpatialPoint.is_valid(self.latitude, self.longitude):
            return SpatialPoint(longitude=self.longitude, latitude=self.latitude)
        return None

    # Interaction state

    def vote_of(self, user_id):
        for vote in self.votes:
            if vote.user_id == user_id:
                return vote
        return None

    def follower_entry(self, user_id):
        for follower in self.followers:
            if follower.user_id == user_id:
                return follower
        return None

    def upvoter_ids(self):
        return {vote.user_id for vote in self.votes if vote.vote_type == 'upvote'}

    def downvoter_ids(self):
        return {vote.user_id for vote in self.votes if vote.vote_type == 'downvote'}

    def follower_ids(self):
        return {follower.user_id for follower in self.followers}

    def sync_stats(self):
        """Recompute the derived counters from the underlying collections."""
        self.stats_upvotes = len(self.upvoter_ids())
        self.stats_downvotes = len(self.downvoter_ids())
        self.stats_comment_count = len(self.comments)
        self.stats_views = self.views or 0
        self.stats_follower_count = len(self.follower_ids())

    @property
    def stats(self):
        return {
            'upvotes': self.stats_upvotes,
            'downvotes': self.stats_downvotes,
            'comment_count': self.stats_comment_count,
            'views': self.stats_views,
            'follower_count': self.stats_follower_count,
        }

    # Access

    def can_view(self, user=None):
        """Public issues are visible to everyone; private ones to the
        reporter, the assignee and admins."""
        if self.is_public:
            return True
        if user is None:
            return False
        if user.is_admin:
            return True
        return user.user_id in (self.reported_by_id, self.assigned_to_id)

    def to_summary(self):
        """Fields needed by map markers and list views."""
        return {
            'issue_id': str(self.issue_id),
            'title': self.title,
            'status': self.status,
            'priority': self.priority,
            'is_public': self.is_public,
            'location': {
                'type': 'Point',
                'coordinates': [self.longitude, self.latitude],
                'address': self.address,
            },
            'category': self.category.to_summary() if self.category else None,
            'reported_by': self.reported_by.to_summary() if self.reported_by else None,
            'assigned_to': self.assigned_to.to_summary() if self.assigned_to else None,
            'tags': self.tags or [],
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'stats': self.stats,
        }

    def to_dict(self, include_comments=False, viewer=None):
        """Convert issue to dictionary."""
        data = self.to_summary()
        data['description'] = self.description
        data['resolved_at'] = self.resolved_at.isoformat() if self.resolved_at else None

        if include_comments:
            data['comments'] = [
                comment.to_dict() for comment in self.comments
                if not comment.is_internal or (viewer is not None and viewer.role in ('authority', 'admin'))
            ]
        return data

    def __repr__(self):
        return f'<Issue {self.title} ({self.status})>'


class IssueVote(db.Model):
    """One row per (issue, user); the unique constraint enforces a single vote."""

    __tablename__ = 'issue_votes'

    vote_id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    issue_id = db.Column(Uuid, db.ForeignKey('issues.issue_id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(Uuid, db.ForeignKey('users.user_id'), nullable=False)
    vote_type = db.Column(db.String(10), nullable=False)  # upvote, downvote
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    issue = db.relationship('Issue', back_populates='votes')

    __table_args__ = (
        db.UniqueConstraint('issue_id', 'user_id', name='uq_issue_votes_issue_user'),
    )

    def __repr__(self):
        return f'<IssueVote {self.vote_type} by {self.user_id} on {self.issue_id}>'


class IssueComment(db.Model):
    __tablename__ = 'issue_comments'

    comment_id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    issue_id = db.Column(Uuid, db.ForeignKey('issues.issue_id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(Uuid, db.ForeignKey('users.user_id'), nullable=False)
    text = db.Column(db.Text, nullable=False)
    is_internal = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    issue = db.relationship('Issue', back_populates='comments')
    user = db.relationship('User')

    def to_dict(self):
        return {
            'comment_id': str(self.comment_id),
            'issue_id': str(self.issue_id),
            'text': self.text,
            'is_internal': self.is_internal,
            'user': self.user.to_summary() if self.user else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class IssueFollower(db.Model):
    __tablename__ = 'issue_followers'

    issue_id = db.Column(Uuid, db.ForeignKey('issues.issue_id', ondelete='CASCADE'), primary_key=True)
    user_id = db.Column(Uuid, db.ForeignKey('users.user_id'), primary_key=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    issue = db.relationship('Issue', back_populates='followers')


register_spatial_indexes(Issue.__table__)
