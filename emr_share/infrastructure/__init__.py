"""Infrastructure layer for EMR-Share: configuration, settings and logging."""
