"""Create a login from the command line: ``python -m storefront.create_user [--admin]``."""
import getpass
import sys

from email_validator import EmailNotValidError, validate_email
from passlib.hash import bcrypt

from storefront.database import connect


def create_user(conn, username, email, password, *, role="user"):
    """Insert a user; returns the new id, or ``None`` when the username is taken."""

    address = validate_email(email, check_deliverability=False).normalized
    with conn.cursor() as cur:
        cur.execute(
            "INSERT INTO users (username, email, password_hash, role) VALUES (%s, %s, %s, %s) "
            "ON CONFLICT (username) DO NOTHING RETURNING id",
            (username, address, bcrypt.hash(password), role),
        )
        row = cur.fetchone()
    conn.commit()
    return row[0] if row else None


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    role = "admin" if "--admin" in args else "user"
    username = input("New username: ").strip()
    email = input("Email: ").strip()
    password = getpass.getpass("New password: ")

    try:
        with connect() as conn:
            user_id = create_user(conn, username, email, password, role=role)
    except EmailNotValidError as exc:
        print(f"Invalid email: {exc}")
        return 1

    if user_id is None:
        print("Username already exists; nothing changed.")
    else:
        print(f"Created {role} {username} with id {user_id}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
