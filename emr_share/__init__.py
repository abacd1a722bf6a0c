"""EMR-Share: access-controlled medical record sharing engine."""

__version__ = "1.0.0"
