"""
CIVICA — Service Core for a Civic-Engagement App
===================================================
Users report local issues, browse a community feed, chat with an AI
assistant, and track gamified contribution stats.  This package holds
the logic the mobile screens call into: the data gateway, the optimistic
feed layer, the points/level transaction, the pulse dashboard views and
the client state stores.

Package layout::

    civica/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Levels, personas, severities, locale strings
    ├── errors.py          # Project exception hierarchy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (users, posts, comments, notifications)
    ├── engine/
    │   ├── entities.py    # Typed entities + row → entity translation
    │   ├── gamification.py  # Pure points/level math, badge status
    │   ├── classification.py  # AI JSON-in-text parse-or-default adapter
    │   ├── aggregation.py # Pure pulse dashboard reducers
    │   ├── optimistic.py  # Local feed state with rollback
    │   └── changefeed.py  # Live change notifications + PG LISTEN/NOTIFY
    ├── services/
    │   ├── post_service.py        # Posts gateway
    │   ├── comment_service.py     # Comments gateway
    │   ├── notification_service.py  # Notifications gateway
    │   ├── user_service.py        # User profile gateway
    │   ├── gamification_service.py  # Atomic points/level update
    │   ├── feed_service.py        # Optimistic upvote orchestration
    │   ├── pulse_service.py       # Live aggregation views
    │   ├── ai_service.py          # Hosted completion API client
    │   ├── storage_service.py     # Object storage client
    │   └── auth_service.py        # Identity API client
    ├── stores/
    │   ├── base.py        # Reactive state container
    │   ├── local_storage.py  # Persisted key/value preferences
    │   ├── auth_store.py  # Session + onboarding accumulator
    │   ├── theme_store.py # Light/dark/system
    │   └── language_store.py  # id/en
    └── api/
        ├── main.py        # FastAPI app
        ├── auth.py        # Identity login → JWT
        └── routes/        # Feed, comments, notifications, pulse, assistant
"""

__version__ = "0.1.0"
