"""
Grant the admin role to a profile.

Usage: python -m rebooked.set_admin <profile-id>
"""
import asyncio
import sys

from rebooked.app.core.database import async_session
from rebooked.app.models.user import Profile


async def make_admin(profile_id: str):
    async with async_session() as session:
        profile = await session.get(Profile, profile_id)

        if profile:
            profile.role = 'admin'
            print(f"Profile {profile_id} is now admin.")
        else:
            # Auth user exists but the profile row has not been created yet
            session.add(Profile(id=profile_id, role='admin'))
            print(f"Profile {profile_id} created as admin.")

        await session.commit()


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else input("Profile id: ").strip()
    asyncio.run(make_admin(target))
