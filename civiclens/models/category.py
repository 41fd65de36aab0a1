from civiclens import db
from datetime import datetime
from sqlalchemy import Uuid
import uuid


class Category(db.Model):
    """Issue category; reference data joined onto aggregation results."""

    __tablename__ = 'categories'

    category_id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(50), unique=True, nullable=False)
    display_name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    icon = db.Column(db.String(16), default='📁', nullable=False)
    color = db.Column(db.String(16), default='#667eea', nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Cached counters refreshed by the category statistics read
    issue_count = db.Column(db.Integer, default=0, nullable=False)
    resolved_count = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    issues = db.relationship('Issue', back_populates='category', lazy='dynamic')

    def __init__(self, name, display_name, **kwargs):
        self.name = name.strip().lower()
        self.display_name = display_name
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def to_summary(self):
        """Display metadata (name, icon, color)."""
        return {
            'category_id': str(self.category_id),
            'name': self.name,
            'display_name': self.display_name,
            'icon': self.icon,
            'color': self.color,
        }

    def to_dict(self):
        data = self.to_summary()
        data.update({
            'description': self.description,
            'is_active': self.is_active,
            'metadata': {
                'issue_count': self.issue_count,
                'resolved_count': self.resolved_count,
            },
        })
        return data

    def __repr__(self):
        return f'<Category {self.name}>'
