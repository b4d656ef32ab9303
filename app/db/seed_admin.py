"""
Seed script to create the first school admin.

Run once (after schema_check) with env set:
  ADMIN_EMAIL=admin@yourschool.com
  ADMIN_PASSWORD=YourSecurePassword

Creates (or resets the password of) one user with role admin and its admin record.
"""
import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.security import hash_password
from app.core.config import settings
from app.core.enums import UserRole
from app.core.identifiers import generate_role_code
from app.core.models import Admin
from app.db.session import AsyncSessionLocal

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_FIRST_NAME = "School"
DEFAULT_ADMIN_LAST_NAME = "Admin"


async def seed_admin(db: AsyncSession) -> None:
    email = settings.admin_email
    password = settings.admin_password
    if not email or not password:
        print("No ADMIN_EMAIL/ADMIN_PASSWORD; skipping admin user.")
        return

    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if not user:
        user = User(
            username=DEFAULT_ADMIN_USERNAME,
            email=email.lower(),
            password_hash=hash_password(password),
            role=UserRole.ADMIN.value,
            first_name=DEFAULT_ADMIN_FIRST_NAME,
            last_name=DEFAULT_ADMIN_LAST_NAME,
            is_active=True,
        )
        db.add(user)
        await db.flush()
        print("Created admin user:", email)
    else:
        user.role = UserRole.ADMIN.value
        user.password_hash = hash_password(password)
        user.is_active = True
        print("Updated existing user to admin:", email)

    record = await db.execute(select(Admin).where(Admin.user_id == user.id))
    if record.scalar_one_or_none() is None:
        db.add(Admin(user=user, admin_code=await generate_role_code(db, Admin.admin_code, UserRole.ADMIN)))
        print("Created admin record.")

    await db.commit()
    print("Admin seed done.")


async def main() -> None:
    async with AsyncSessionLocal() as db:
        try:
            await seed_admin(db)
        except Exception as e:
            await db.rollback()
            print("Error:", e)
            raise


if __name__ == "__main__":
    asyncio.run(main())
