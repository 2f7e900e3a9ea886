"""
Import an account list file (``NICK URL [ADDED]`` per line) into the
database named by the settings file, then fetch every new feed.
"""
import argparse
import logging
import sys

from twtxt_registry.app import configure_logging, create_app
from twtxt_registry.settings import load_settings

logger = logging.getLogger("main")


def bulk_add(list_path, config_file=None, http_session=None):
    settings = load_settings(config_file=config_file)
    app = create_app(settings, http_session=http_session, start_scheduler=False)

    with open(list_path, "r", encoding="utf-8") as list_file:
        account_list = list_file.read()

    with app.app_context():
        registrations = app.registry.bulk_register(account_list)

        failed = [r for r in registrations if r.fetch_error is not None]
        logger.info(f"Added {len(registrations)} accounts, {len(failed)} feeds could not be fetched")
        for registration in registrations:
            print(f"{registration.account.nick}\t{registration.account.url}\t{registration.passcode}")
    return registrations


def main():
    parser = argparse.ArgumentParser(description="Bulk add accounts to the registry")
    parser.add_argument("account_list", help="Path to the account list file")
    parser.add_argument("--config", help="Path to the settings file", default=None)
    args = parser.parse_args()

    configure_logging()
    try:
        bulk_add(args.account_list, args.config)
    except OSError as e:
        logger.error(f"Couldn't open account list: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
