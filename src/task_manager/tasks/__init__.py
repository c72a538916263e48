"""Store, policy layer and command vocabulary."""
