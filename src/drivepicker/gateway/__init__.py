"""Remote access exports for drivepicker."""

from __future__ import annotations

from .listing_cache import ListingCache
from .resource_gateway import Connection, KnowledgeBase, ResourceGateway

__all__ = ["ResourceGateway", "ListingCache", "Connection", "KnowledgeBase"]
