"""Configuration, database, security and clock."""
