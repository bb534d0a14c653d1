# ============================================================================
# Seed Dashboard Widgets
# ============================================================================
"""
Script to create the reporting tables and seed the built-in widget catalog.
Optionally promotes (or creates) an admin user and prints an access token
for calling the analytics endpoints.

Usage:
    python scripts/seed_widgets.py
    python scripts/seed_widgets.py --admin-email admin@yoga.example.com
"""

import asyncio
import argparse
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from app import models  # noqa: F401
from app.core.database import async_session_maker, engine, Base
from app.core.security import create_access_token
from app.models.user import User, UserRole
from app.services.reporting.dashboard_service import DashboardService

async def seed(admin_email: str = None):
    """Create tables, seed widgets and optionally set up an admin"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as db:
        count = await DashboardService(db).seed_default_widgets()
        print(f"Seeded {count} default widgets")

        if admin_email:
            result = await db.execute(select(User).where(User.email == admin_email))
            user = result.scalar_one_or_none()

            if user:
                user.role = UserRole.ADMIN
                print(f"Updated existing user {admin_email} to admin")
            else:
                user = User(email=admin_email, role=UserRole.ADMIN, is_active=True)
                db.add(user)
                print(f"Created admin user: {admin_email}")
            await db.commit()

            print(f"Access token: {create_access_token({'sub': str(user.id)})}")

    await engine.dispose()

def main():
    parser = argparse.ArgumentParser(description="Seed dashboard widgets")
    parser.add_argument("--admin-email", help="Email of a user to promote to admin")

    args = parser.parse_args()
    asyncio.run(seed(args.admin_email))

if __name__ == "__main__":
    main()
