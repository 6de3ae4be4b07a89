"""Recipient routing: address checks, routing policy, and the router."""

from mailreply.routing.models import RoutingDecision, RoutingPolicy
from mailreply.routing.router import ROUTING_STEPS, route

__all__ = [
    "ROUTING_STEPS",
    "RoutingDecision",
    "RoutingPolicy",
    "route",
]
