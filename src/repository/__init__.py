"""Issue-tracker integrations."""
