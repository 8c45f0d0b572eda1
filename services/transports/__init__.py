"""Replication transports.

Import the concrete transports from their modules; the peer-to-peer and relay
transports pull in network stacks that display-only surfaces may not need.
"""

from services.transports.base import Transport

__all__ = ["Transport"]
