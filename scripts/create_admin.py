#!/usr/bin/env python3
"""
Create Admin Account
====================

Bootstrap the first admin. Public registration only creates plain users,
and staff accounts are created by an admin, so the first one comes from here.

Usage:
    python scripts/create_admin.py <username> <email> <password>
"""

import asyncio
import sys

from helpdesk.config import UserRole
from helpdesk.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)
from helpdesk.shared.infrastructure.clock import get_clock
from helpdesk.users.infrastructure import PasslibPasswordHasher, SQLAlchemyUserRepository


async def create_admin(username: str, email: str, password: str) -> int:
    """Insert an admin account and return its id."""
    init_database()
    await create_tables()
    try:
        async with get_session_context() as session:
            user = await SQLAlchemyUserRepository(session).create(
                username=username,
                email=email,
                password_hash=PasslibPasswordHasher().hash(password),
                role=UserRole.ADMIN,
                now=get_clock().now(),
            )
        return user.id
    finally:
        await close_database()


def main():
    if len(sys.argv) != 4:
        print(__doc__.strip().splitlines()[-1].strip())
        sys.exit(1)

    username, email, password = sys.argv[1:]
    user_id = asyncio.run(create_admin(username, email, password))
    print(f"Admin '{username}' created with id {user_id}")


if __name__ == "__main__":
    main()
