"""Version models, package token parsing and manifest-order version resolution."""
