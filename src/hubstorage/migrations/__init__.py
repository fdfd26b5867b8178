"""Organization migration exports and archive downloads."""

from src.hubstorage.migrations.archive import MigrationArchiver

__all__ = ["MigrationArchiver"]
