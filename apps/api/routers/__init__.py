"""Routers package."""

from . import (
    health,
    auth,
    orders,
    cleanup,
    admin,
    referrals,
)
