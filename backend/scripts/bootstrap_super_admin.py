"""
Promote an existing account to super_admin.

The API never grants super_admin, so the first super admin is created here:
the account signs up normally, then an operator runs this script against the
same database and identity provider.

Requires DATABASE_URL, SUPABASE_URL, SUPABASE_ANON_KEY and
SUPABASE_SERVICE_ROLE_KEY in the environment.

Usage:
    python -m scripts.bootstrap_super_admin owner@example.com
"""
import argparse
import asyncio
import logging
import os
import sys

# Add parent directory to path to import bazaar modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bazaar.auth.identity_provider import IdentityProviderError
from bazaar.auth.rbac_contract import Role
from bazaar.crud.profile import ProfileRepository
from bazaar.database import AsyncSessionLocal
from bazaar.dependencies import get_identity_provider


logger = logging.getLogger("bazaar.bootstrap")


async def bootstrap_super_admin(email: str) -> int:
    identity_provider = get_identity_provider()
    async with AsyncSessionLocal() as session:
        profiles = ProfileRepository(session)
        profile = await profiles.get_by_email(email)
        if profile is None:
            logger.error("No profile found for %s; the account must sign up first", email)
            return 1
        if profile.role == Role.SUPER_ADMIN.value:
            logger.info("%s is already super_admin", email)
            return 0

        try:
            await identity_provider.admin_update_user(
                str(profile.id), user_metadata={"role": Role.SUPER_ADMIN.value}
            )
        except IdentityProviderError as exc:
            logger.error("Could not update provider role claim for %s: %s", email, exc)
            return 1

        await profiles.set_role(profile.id, Role.SUPER_ADMIN.value)
        await session.commit()

    logger.info("Promoted %s (%s) to super_admin", email, profile.id)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Promote an account to super_admin")
    parser.add_argument("email", help="email of an existing account")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")
    return asyncio.run(bootstrap_super_admin(args.email))


if __name__ == "__main__":
    sys.exit(main())
