# Models package init
"""
TextLens Backend — ORM Models

Importing this package registers every table with Base.metadata, which is
what Alembic autogenerate and the test suite's create_all() rely on.
"""

from textlens.models.document import Document
from textlens.models.user import User

__all__ = ["Document", "User"]
