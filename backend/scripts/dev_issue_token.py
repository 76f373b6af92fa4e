"""Print a bearer token for a local user.

Usage: ``python scripts/dev_issue_token.py user@example.com``
"""

from __future__ import annotations

import asyncio
import sys
from datetime import timedelta

from sqlalchemy import select

from tableside.core.security import create_access_token
from tableside.db.session import get_sessionmaker
from tableside.models import User


async def main(email: str) -> int:
    sessionmaker = get_sessionmaker()
    async with sessionmaker() as session:
        user = (
            await session.execute(select(User).where(User.email == email))
        ).scalar_one_or_none()
    if user is None:
        print(f"No user with email {email}", file=sys.stderr)
        return 1
    token = create_access_token(str(user.id), expires_delta=timedelta(hours=12))
    print(f"{user.role.value} {user.email}")
    print(token)
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__, file=sys.stderr)
        sys.exit(2)
    sys.exit(asyncio.run(main(sys.argv[1])))
