"""At-least-once audit delivery of conversation turns."""

from switchboard.delivery.delivery import DeliveryQueue
from switchboard.delivery.queue import InMemoryTurnQueue, RedisTurnQueue, TurnQueue

__all__ = ["DeliveryQueue", "InMemoryTurnQueue", "RedisTurnQueue", "TurnQueue"]
