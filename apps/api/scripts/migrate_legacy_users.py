import asyncio
import sys
import os

from sqlalchemy import or_
from sqlalchemy.future import select

# Add parent dir to path to find config and models
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import async_session_maker
from models.user import User
from services.users import migrate_legacy_user_fields

BATCH_SIZE = 200


async def migrate_legacy_users_async(dry_run: bool = False) -> int:
    """Fold legacy quota/counter columns into the current fields for every user."""
    print("🔍 Scanning for users with legacy credit fields...")
    migrated = 0
    async with async_session_maker() as db:
        result = await db.execute(
            select(User).where(
                or_(
                    User.credits_remaining.is_(None),
                    User.credits_remaining < 0,
                    User.total_orders.is_(None),
                    User.total_pages.is_(None),
                    User.page_quota.is_not(None),
                    User.total_orders_placed.is_not(None),
                    User.total_pages_used.is_not(None),
                )
            )
        )
        users = result.scalars().all()
        print(f"📋 Found {len(users)} candidate users")

        for index, user in enumerate(users, start=1):
            if migrate_legacy_user_fields(user):
                migrated += 1
                print(f"  - {user.id}: creditsRemaining={user.credits_remaining}")
            if index % BATCH_SIZE == 0 and not dry_run:
                await db.commit()

        if dry_run:
            await db.rollback()
            print(f"🧪 Dry run: {migrated} users would be migrated")
        else:
            await db.commit()
            print(f"✅ Migrated {migrated} users")
    return migrated


if __name__ == "__main__":
    asyncio.run(migrate_legacy_users_async(dry_run="--dry-run" in sys.argv))
