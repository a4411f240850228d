"""Store SysML v2 models in a queryable SQLite database."""
