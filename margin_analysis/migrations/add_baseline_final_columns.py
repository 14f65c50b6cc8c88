"""
Migration script to add dual (baseline/final) tracking columns.

Databases created before baseline tracking only stored one set of metrics
and a single `hours` figure per resource. This adds the missing columns
in place; new databases get them from Base.metadata.create_all().
"""
import logging
from sqlalchemy import inspect, text
from margin_analysis.database import engine

logger = logging.getLogger(__name__)

PROJECT_RESOURCE_COLUMNS = {
    "baseline_hours": "FLOAT DEFAULT 0",
    "final_hours": "FLOAT DEFAULT 0",
}

PROJECT_COLUMNS = {
    "service_value_usd": "FLOAT",
    "baseline_total_costs_usd": "FLOAT",
    "baseline_margin_percent": "FLOAT",
    "baseline_net_revenue_usd": "FLOAT",
    "baseline_ebita_usd": "FLOAT",
    "baseline_ps_ratio": "FLOAT",
    "baseline_margin_status": "VARCHAR(32)",
    "baseline_ps_ratio_status": "VARCHAR(32)",
    "hours_valid": "BOOLEAN",
    "hours_difference": "FLOAT",
}


def _add_missing(conn, inspector, table, columns):
    existing = {col["name"] for col in inspector.get_columns(table)}
    added = []
    for name, ddl in columns.items():
        if name not in existing:
            conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}"))
            added.append(name)
    return added


def ensure_margin_columns():
    """Add missing baseline/final columns to projects and project_resources."""
    inspector = inspect(engine)

    with engine.begin() as conn:
        if inspector.has_table("project_resources"):
            added = _add_missing(conn, inspector, "project_resources", PROJECT_RESOURCE_COLUMNS)
            if "final_hours" in added:
                # existing rows only had the final figure in `hours`
                conn.execute(text("UPDATE project_resources SET final_hours = hours"))
            if added:
                logger.info("Added columns to project_resources: %s", ", ".join(added))

        if inspector.has_table("projects"):
            added = _add_missing(conn, inspector, "projects", PROJECT_COLUMNS)
            if added:
                logger.info("Added columns to projects: %s", ", ".join(added))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    ensure_margin_columns()
    print("Baseline/final columns verified.")
