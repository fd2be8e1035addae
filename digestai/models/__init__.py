"""SQLAlchemy models package."""

from digestai.models.user import User
from digestai.models.summary import Summary
from digestai.models.usage import Usage

__all__ = ["User", "Summary", "Usage"]
