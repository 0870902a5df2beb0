"""Event domain services: join codes, wishlist claims, change feeds.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and socket handlers, keeping transport concerns separated
from event mechanics.
"""
