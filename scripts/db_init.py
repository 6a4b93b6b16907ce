#!/usr/bin/env python3
"""
Database initialization script
"""
import asyncio
import sys
from pathlib import Path

# Add the project root to the Python path
current_dir = Path(__file__).parent
root_dir = current_dir.parent
sys.path.insert(0, str(root_dir))

async def init_database(reset: bool = False) -> None:
    """Create the relational schema"""
    from bloglab.config import get_settings
    from bloglab.stores import SqlStore

    settings = get_settings()
    print(f"🚀 Initializing database: {settings.database_url}")

    store = None
    try:
        store = await SqlStore.from_url(settings.database_url, settings)
        if reset:
            print("🧹 Dropping existing tables...")
            await store.reset_schema()
        print("✅ Database initialized successfully")
    except Exception as e:
        print(f"❌ Error initializing database: {e}")
        sys.exit(1)
    finally:
        if store is not None:
            await store.close()

def main() -> None:
    """Main entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="Database Initialization")
    parser.add_argument("--reset", action="store_true", help="Drop all tables before creating them")
    args = parser.parse_args()

    asyncio.run(init_database(reset=args.reset))

if __name__ == "__main__":
    main()
