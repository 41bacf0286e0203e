"""Routers package."""

from . import (
    health,
    customers,
    vendors,
    credits,
    subscriptions,
    business,
)
