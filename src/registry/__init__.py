"""Registry mirror, manifest and history access for registration-time queries."""
