"""Storage core: backends, crypto, secure store, migration, recommendations, backups."""
