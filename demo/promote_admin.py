#!/usr/bin/env python3
"""One-time script to grant a role to an existing user. Run on the server.

Usage:
    python demo/promote_admin.py admin@toursdemo.com
    python demo/promote_admin.py lead@toursdemo.com --role lead-guide
"""
import argparse
import asyncio

from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from tourbook.config import settings
from tourbook.models.user import User, UserRole


async def promote(email: str, role: UserRole):
    engine = create_async_engine(settings.DATABASE_URL)
    sf = async_sessionmaker(engine, class_=AsyncSession)
    async with sf() as s:
        r = await s.execute(
            update(User)
            .where(User.email == email.strip().lower())
            .values(role=role)
        )
        await s.commit()
        print(f"Rows updated: {r.rowcount}")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("email")
    parser.add_argument("--role", default=UserRole.ADMIN.value, choices=[r.value for r in UserRole])
    args = parser.parse_args()
    asyncio.run(promote(args.email, UserRole(args.role)))
