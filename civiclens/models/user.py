from civiclens import db
from datetime import datetime
from sqlalchemy import Uuid
import uuid

from civiclens.geo.index import register_spatial_indexes
from civiclens.geo.point import SpatialPoint


class User(db.Model):
    """User model; a located entity when the user has shared a location."""

    __tablename__ = 'users'

    # Primary fields
    user_id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    role = db.Column(db.String(20), default='citizen', nullable=False)  # citizen, authority, admin
    profession = db.Column(db.String(100), nullable=True)
    avatar_url = db.Column(db.String(255), nullable=True)

    # Account status
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Location (optional for users)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    address = db.Column(db.String(255), nullable=True)

    __table_args__ = (
        db.Index('ix_users_lat_lng', 'latitude', 'longitude'),
    )

    def __init__(self, name, email, **kwargs):
        """Initialize user with required fields."""
        self.name = name
        self.email = email.lower()
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    @property
    def is_admin(self):
        return self.role == 'admin'

    @property
    def point(self):
        """Spatial point, or None when the user has no (valid) location."""
        if SpatialPoint.is_valid(self.latitude, self.longitude):
            return SpatialPoint(longitude=self.longitude, latitude=self.latitude)
        return None

    def update_location(self, point: SpatialPoint, address=None):
        """Update user location."""
        self.latitude = point.latitude
        self.longitude = point.longitude
        if address is not None:
            self.address = address
        db.session.commit()

    def to_summary(self):
        """Display fragment joined onto issues and comments."""
        return {
            'user_id': str(self.user_id),
            'name': self.name,
            'avatar_url': self.avatar_url,
            'role': self.role,
        }

    def to_dict(self):
        """Convert user to dictionary."""
        data = self.to_summary()
        data.update({
            'email': self.email,
            'profession': self.profession,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        })
        if self.point:
            data['location'] = dict(self.point.to_geojson(), address=self.address)
        return data

    def __repr__(self):
        return f'<User {self.email}>'


register_spatial_indexes(User.__table__)
