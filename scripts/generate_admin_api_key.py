#!/usr/bin/env python3
"""
CLI script to create or rotate the admin API key.

The key is printed once. Only its hash is stored, so keep the output safe.

Usage:
    python scripts/generate_admin_api_key.py
    python scripts/generate_admin_api_key.py --force   # replace an existing key
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from admin_settings.database import async_session_factory, engine, init_db
from admin_settings.services.setting_service import get_setting_service


async def generate_admin_api_key(force: bool = False) -> bool:
    """Generate the admin API key, refusing to replace one unless forced."""
    print("\n" + "=" * 50)
    print("Admin API Key Setup")
    print("=" * 50 + "\n")

    await init_db()
    setting_service = get_setting_service()

    async with async_session_factory() as session:
        masked_key, exists = await setting_service.get_admin_api_key_status(session)
        if exists and not force:
            print(f"An admin API key already exists: {masked_key}")
            print("Use --force to replace it.")
            return False

        key = await setting_service.generate_admin_api_key(session)

    print("=" * 50)
    print("Admin API Key Generated")
    print("=" * 50)
    print(f"  Key: {key}")
    print("  This key will not be shown again.")
    print("=" * 50 + "\n")
    return True


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Generate the admin API key")
    parser.add_argument("--force", action="store_true", help="Replace an existing key")

    args = parser.parse_args()

    try:
        success = await generate_admin_api_key(force=args.force)
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n\nAborted by user.")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
