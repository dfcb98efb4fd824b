"""Storage backends for dealroute."""

from dealroute.store.base import ConversationStore
from dealroute.store.deals import DealRepository, InMemoryDealRepository
from dealroute.store.memory import InMemoryStore
from dealroute.store.seed import demo_deals

__all__ = [
    "ConversationStore",
    "DealRepository",
    "InMemoryDealRepository",
    "InMemoryStore",
    "demo_deals",
]
