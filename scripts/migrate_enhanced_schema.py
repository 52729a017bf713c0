"""
Create the enhanced tenant tables (family members, electricity meter readings)
on a deployment that still runs the legacy schema.

Running API instances keep their detected schema mode; restart them after the
migration so the tenant backend picks up the enhanced tables.
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

try:
    from dotenv import load_dotenv
    load_dotenv()
except Exception as e:
    print(f"WARNING: Could not load .env file: {e}")

database_url = os.getenv("DATABASE_URL", "sqlite:///./var/dev.db")

if database_url.startswith("postgresql"):
    try:
        import psycopg2  # noqa: F401
    except ImportError:
        print("ERROR: PostgreSQL database detected but psycopg2 is not installed.")
        print("Please install it with: pip install psycopg2-binary")
        sys.exit(1)

try:
    from sqlalchemy import inspect
    from propdesk.db import Base, engine
    from propdesk.models.models import ENHANCED_ONLY_TABLES
except Exception as e:
    print(f"ERROR: Failed to import database components: {e}")
    sys.exit(1)

print("=" * 60)
print("Creating enhanced tenant schema tables")
print("=" * 60)
print()

existing = set(inspect(engine).get_table_names())
missing = [name for name in ENHANCED_ONLY_TABLES if name not in existing]

if not missing:
    print("[OK] Enhanced schema already present, nothing to do")
    sys.exit(0)

try:
    tables = [Base.metadata.tables[name] for name in missing]
    Base.metadata.create_all(bind=engine, tables=tables)
    for name in missing:
        print(f"[OK] Table {name} created")
except Exception as e:
    print(f"ERROR: {e}")
    sys.exit(1)

print()
print("Done. Restart API instances to switch them to the enhanced schema.")
