#!/usr/bin/env python3
"""
Utility script to reset a user password or create a new admin user.
Run from the project root:
    python reset_password.py
"""
import sys
import os

# Add the app to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fastapi import HTTPException

from liftdesk.database import SessionLocal, engine, Base
from liftdesk.models import User, Company
from liftdesk.services.auth import get_user_by_email, set_password, create_user, register_company


def list_users():
    """List all users in the database"""
    db = SessionLocal()
    try:
        users = db.query(User).order_by(User.company_id, User.id).all()
        if not users:
            print("\nNo users found in database.")
            return []

        print("\n=== Existing Users ===")
        for user in users:
            print(f"  ID: {user.id}, Company: {user.company_id}, Email: {user.email}, "
                  f"Name: {user.full_name}, Role: {user.role}, Active: {user.is_active}")
        return users
    finally:
        db.close()


def reset_password(email: str, new_password: str):
    """Reset password for an existing user"""
    db = SessionLocal()
    try:
        user = get_user_by_email(db, email)
        if not user:
            print(f"\nError: User with email '{email}' not found.")
            return False

        user.is_active = True  # Ensure user is active
        try:
            set_password(db, user, new_password)
        except ValueError as e:
            print(f"\nError: {e}")
            return False
        print(f"\nSuccess! Password reset for user: {email}")
        return True
    finally:
        db.close()


def create_admin(email: str, password: str, name: str = "Admin", company_name: str = None):
    """Create an admin user, in an existing company or a new one"""
    db = SessionLocal()
    try:
        company = db.query(Company).order_by(Company.id).first()
        try:
            if company_name or not company:
                register_company(db, company_name or "LiftDesk", email, password, name)
            else:
                create_user(db, company.id, email, password, name, role="admin")
        except HTTPException as e:
            print(f"\nError: {e.detail}")
            return False
        print(f"\nSuccess! Created admin user: {email}")
        return True
    finally:
        db.close()


def main():
    print("\n=== LiftDesk User Management ===")

    Base.metadata.create_all(bind=engine)

    # First, list existing users
    users = list_users()

    print("\nOptions:")
    print("  1. Reset password for existing user")
    print("  2. Create new admin user")
    print("  3. Exit")

    choice = input("\nEnter choice (1/2/3): ").strip()

    if choice == "1":
        if not users:
            print("No users to reset. Create a new admin user instead.")
            choice = "2"
        else:
            email = input("Enter user email: ").strip()
            new_password = input("Enter new password: ").strip()
            if email and new_password:
                reset_password(email, new_password)
            else:
                print("Email and password are required.")

    if choice == "2":
        email = input("Enter admin email: ").strip()
        password = input("Enter password: ").strip()
        name = input("Enter name (default: Admin): ").strip() or "Admin"
        company_name = input("New company name (leave empty to join the first company): ").strip() or None
        if email and password:
            create_admin(email, password, name, company_name)
        else:
            print("Email and password are required.")

    if choice == "3":
        print("Goodbye!")


if __name__ == "__main__":
    main()
