from .catalog import (
    MIGRATIONS,
    Migration,
    MigrationPlan,
    get_migration,
    plan_migration,
    run_migration,
)

__all__ = [
    "MIGRATIONS",
    "Migration",
    "MigrationPlan",
    "get_migration",
    "plan_migration",
    "run_migration",
]
