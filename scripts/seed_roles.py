"""
Seed the default roles.

Usage:
    python scripts/seed_roles.py [--admin-email EMAIL --admin-password PASSWORD]

Existing roles are overwritten with the defaults below. When admin credentials
are given, an admin account is created as well (skipped if it already exists).
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Load environment variables before the settings are built
from dotenv import load_dotenv
load_dotenv()

from billhub.constants import ALL_PATHS
from billhub.errors import ConflictError
from billhub.schemas.users import RoleDefinition, UserCreateRequest
from billhub.services import users as user_service
from billhub.store.registry import get_store, init_store


DEFAULT_ROLES = [
    RoleDefinition(id="admin", name="Administrator", allowed_paths=[ALL_PATHS], description="Full access and configuration"),
    RoleDefinition(
        id="director",
        name="Director",
        allowed_paths=["/", "/projects", "/financials", "/reports", "/resources", "/timesheets"],
        description="Global and financial overview; ratifies approved work",
    ),
    RoleDefinition(
        id="project_manager",
        name="Project Manager",
        allowed_paths=["/", "/projects", "/timesheets", "/resources", "/reports", "/financials"],
        description="Projects, resources and first-level approvals",
    ),
    RoleDefinition(id="subcontractor", name="Subcontractor", allowed_paths=["/timesheets"], description="Logs hours"),
]


def seed_roles(store=None):
    """Write the default roles"""
    store = store or get_store()
    for role in DEFAULT_ROLES:
        user_service.save_role(store, role)
        print(f"  role {role.id}: {', '.join(role.allowed_paths)}")
    print(f"Seeded {len(DEFAULT_ROLES)} roles.")


def seed_admin(email: str, password: str, store=None):
    store = store or get_store()
    try:
        result = user_service.create_user(
            store,
            UserCreateRequest(email=email, password=password, display_name="Administrator", role_id="admin"),
        )
        print(f"Admin created: {email} (uid {result['user']['uid']})")
    except ConflictError:
        print(f"Admin {email} already exists, skipping.")


def main():
    parser = argparse.ArgumentParser(description="Seed default roles (and optionally an admin account)")
    parser.add_argument("--admin-email", help="Create an admin account with this email")
    parser.add_argument("--admin-password", help="Password for the admin account")
    args = parser.parse_args()

    store = get_store()
    init_store(store)
    seed_roles(store)
    if args.admin_email:
        if not args.admin_password:
            parser.error("--admin-password is required with --admin-email")
        seed_admin(args.admin_email, args.admin_password, store)


if __name__ == "__main__":
    main()
