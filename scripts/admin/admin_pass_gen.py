"""
Prompt for an admin password and print the hash to paste into
``server.admin_password`` in the settings file.
"""
import argparse
import getpass
import sys

from werkzeug.security import generate_password_hash

from twtxt_registry.constants import PASSCODE_HASH_METHOD


def hash_admin_password(password):
    return generate_password_hash(password, method=PASSCODE_HASH_METHOD)


def main():
    parser = argparse.ArgumentParser(description="Generate the admin password hash for the registry settings")
    parser.parse_args()

    password = getpass.getpass("Admin password: ")
    confirmation = getpass.getpass("Confirm password: ")
    if not password:
        print("The password cannot be empty.", file=sys.stderr)
        return 1
    if password != confirmation:
        print("The passwords do not match.", file=sys.stderr)
        return 1

    print("Add the following to the server section of your settings file:\n")
    print(f"  admin_password: '{hash_admin_password(password)}'")
    return 0


if __name__ == "__main__":
    sys.exit(main())
