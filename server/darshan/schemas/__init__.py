"""Pydantic schemas for request/response validation."""

from .booking import *  # noqa: F403
from .common import *  # noqa: F403
from .crowd import *  # noqa: F403
from .emergency import *  # noqa: F403
from .health import *  # noqa: F403
from .notification import *  # noqa: F403
from .parking import *  # noqa: F403
from .payment import *  # noqa: F403
from .queue import *  # noqa: F403
from .traffic import *  # noqa: F403
from .weather import *  # noqa: F403
