#!/usr/bin/env python3
"""
CivicLens Backend - Main Application Entry Point

This file creates the app instance, registers the database CLI commands
and runs the development server.
"""

import os

from sqlalchemy import text

from civiclens import create_app, db
from civiclens.geo.point import SpatialPoint
from civiclens.models import Category, Issue, IssueComment, IssueFollower, IssueVote, User

# Determine configuration
config_name = os.environ.get('FLASK_ENV', 'development')

# Create Flask application
app = create_app(config_name)

SAMPLE_CATEGORIES = [
    ('infrastructure', 'Infrastructure', '🏗️', '#3b82f6'),
    ('environment', 'Environment', '🌱', '#10b981'),
    ('public-safety', 'Public Safety', '🚨', '#ef4444'),
    ('transportation', 'Transportation', '🚌', '#f59e0b'),
    ('utilities', 'Utilities', '⚡', '#f97316'),
    ('parks-recreation', 'Parks & Recreation', '🌳', '#84cc16'),
]

SAMPLE_USERS = [
    {'name': 'Demo Citizen', 'email': 'citizen@civiclens.app', 'latitude': 23.8103, 'longitude': 90.4125},
    {'name': 'City Authority', 'email': 'authority@civiclens.app', 'role': 'authority',
     'latitude': 23.7806, 'longitude': 90.4193},
    {'name': 'Site Admin', 'email': 'admin@civiclens.app', 'role': 'admin'},
]

SAMPLE_ISSUES = [
    ('Broken streetlight on Road 11', 'infrastructure', 'high', 'open', 23.7937, 90.4066),
    ('Garbage pile near Karwan Bazar', 'environment', 'medium', 'open', 23.7510, 90.3935),
    ('Open manhole on Mirpur Road', 'public-safety', 'urgent', 'in-progress', 23.7465, 90.3563),
    ('Bus stop shelter damaged', 'transportation', 'low', 'resolved', 23.8223, 90.4265),
    ('Frequent power cuts in Banani', 'utilities', 'high', 'open', 23.7940, 90.4043),
]


@app.shell_context_processor
def make_shell_context():
    """Make database models available in Flask shell."""
    return {
        'db': db,
        'User': User,
        'Category': Category,
        'Issue': Issue,
        'IssueVote': IssueVote,
        'IssueComment': IssueComment,
        'IssueFollower': IssueFollower,
    }


@app.cli.command()
def init_db():
    """Initialize the database."""
    if db.engine.dialect.name == 'postgresql':
        print("Enabling PostGIS extension...")
        with db.engine.begin() as connection:
            connection.execute(text('CREATE EXTENSION IF NOT EXISTS postgis'))

    print("Creating database tables...")
    db.create_all()
    print("Database tables created successfully!")

    # Show created tables
    inspector = db.inspect(db.engine)
    tables = inspector.get_table_names()
    print(f"Created tables: {', '.join(tables)}")


@app.cli.command()
def seed_db():
    """Seed the database with sample data around Dhaka."""
    print("Seeding database with sample data...")

    categories = {}
    for name, display_name, icon, color in SAMPLE_CATEGORIES:
        category = Category.query.filter_by(name=name).first()
        if not category:
            category = Category(name, display_name, icon=icon, color=color)
            db.session.add(category)
            print(f"Created category: {name}")
        categories[name] = category

    users = []
    for user_data in SAMPLE_USERS:
        user = User.query.filter_by(email=user_data['email']).first()
        if not user:
            user = User(**user_data)
            db.session.add(user)
            print(f"Created user: {user_data['email']}")
        users.append(user)

    db.session.flush()

    if not Issue.query.first():
        reporter = users[0]
        for title, category_name, priority, status, latitude, longitude in SAMPLE_ISSUES:
            issue = Issue(
                title,
                f'{title}. Reported from the sample data set.',
                categories[category_name].category_id,
                reporter.user_id,
                SpatialPoint.from_lat_lng(latitude, longitude),
                priority=priority,
                status=status,
            )
            db.session.add(issue)
            print(f"Created issue: {title}")

    db.session.commit()
    print("Database seeded successfully!")


@app.cli.command()
def reset_db():
    """Reset the database (drop and recreate all tables)."""
    print("Resetting database...")
    db.drop_all()
    db.create_all()
    print("Database reset completed!")


if __name__ == '__main__':
    app.run(
        host='0.0.0.0',
        port=int(os.environ.get('PORT', 5000)),
        debug=app.config.get('DEBUG', False)
    )
