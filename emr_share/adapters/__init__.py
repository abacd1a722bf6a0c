"""Adapters layer for EMR-Share.

This module contains adapters that interface with external systems.
Adapters implement Port interfaces defined in the domain layer: record and
principal storage, and the caller's identity.
"""
