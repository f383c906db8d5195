"""Forward-only SQL migrations applied by migrate.run_migrations."""
