"""Connection id to display name tracking and roster derivation."""

from .tracker import MembershipTracker

__all__ = ["MembershipTracker"]
