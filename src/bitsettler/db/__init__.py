"""SQLite persistence for accounts, settlements, members and treasury history."""
