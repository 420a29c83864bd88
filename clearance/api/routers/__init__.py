"""API routers for the clearance service."""

from . import health
from . import stages
from . import submissions
from . import people
from . import reviewers
from . import notifications
from . import webhooks

__all__ = [
    "health",
    "stages",
    "submissions",
    "people",
    "reviewers",
    "notifications",
    "webhooks",
]
