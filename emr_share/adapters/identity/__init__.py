"""Identity adapters for EMR-Share."""

from emr_share.adapters.identity.static_identity import StaticIdentity

__all__ = ["StaticIdentity"]
