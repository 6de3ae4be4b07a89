"""Pydantic models for recipient routing."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, model_validator

from mailreply.routing.addresses import address_key


class RoutingPolicy(BaseModel):
    """Policy switches the router consults."""

    model_config = ConfigDict(frozen=True)

    allow_ai_recipients: bool = False


class RoutingDecision(BaseModel):
    """Final To / Cc for a reply.

    Both tuples are deduplicated (case-insensitive) and Cc never repeats an
    address already in To.
    """

    model_config = ConfigDict(frozen=True)

    to: tuple[str, ...]
    cc: tuple[str, ...] = ()

    @model_validator(mode="after")
    def check_disjoint_and_unique(self) -> RoutingDecision:
        to_keys = [address_key(a) for a in self.to]
        cc_keys = [address_key(a) for a in self.cc]
        if len(set(to_keys)) != len(to_keys):
            raise ValueError("duplicate address in To")
        if len(set(cc_keys)) != len(cc_keys):
            raise ValueError("duplicate address in Cc")
        overlap = set(to_keys) & set(cc_keys)
        if overlap:
            raise ValueError(f"addresses in both To and Cc: {sorted(overlap)}")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.to and not self.cc
