#!/usr/bin/env python3
"""
Script to create an admin user for the Flight Booking Platform and print an
access token for it.
"""

import asyncio
import sys
import os

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from flight_booking_platform.database import close_database, get_db_session, init_database
from flight_booking_platform.models.user import User, UserRole
from flight_booking_platform.utils.auth import create_access_token


async def create_admin_user():
    """Create an admin user interactively, or promote an existing one."""
    print("Flight Booking Platform - Admin User Creation")
    print("=" * 50)

    email = input("Enter admin email: ").strip()
    if not email:
        print("Email is required!")
        return

    await init_database()
    try:
        async with get_db_session() as db:
            result = await db.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()

            if user:
                print(f"User with email {email} already exists, promoting to admin")
                user.role = UserRole.ADMIN
            else:
                first_name = input("Enter first name: ").strip()
                last_name = input("Enter last name: ").strip()
                if not first_name or not last_name:
                    print("First and last name are required!")
                    return

                user = User(
                    email=email,
                    first_name=first_name,
                    last_name=last_name,
                    role=UserRole.ADMIN,
                    is_active=True
                )
                db.add(user)

            await db.flush()

            print(f"   Email: {user.email}")
            print(f"   Name: {user.full_name}")
            print(f"   ID: {user.id}")
            print(f"   Token: {create_access_token({'sub': str(user.id), 'email': user.email})}")
    finally:
        await close_database()


async def list_admin_users():
    """List all admin users."""
    await init_database()
    try:
        async with get_db_session() as db:
            result = await db.execute(select(User).where(User.role == UserRole.ADMIN))
            admin_users = result.scalars().all()

            if not admin_users:
                print("No admin users found.")
            for user in admin_users:
                status = "Active" if user.is_active else "Inactive"
                print(f"{user.email} ({user.full_name}) {status} {user.id}")
    finally:
        await close_database()


async def main():
    """Main function."""
    if len(sys.argv) > 1 and sys.argv[1] == "list":
        await list_admin_users()
    else:
        await create_admin_user()


if __name__ == "__main__":
    asyncio.run(main())
