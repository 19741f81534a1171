"""Services package: persistence and backups."""
