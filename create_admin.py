"""
Provision an admin account straight into the database.

    DATABASE_URL=mongodb://localhost:27017 python create_admin.py --email admin@shop.com --password admin123
"""
import argparse
import logging
import sys

from pydantic import ValidationError as PydanticValidationError

import database
import users
from errors import AppError
from schemas import CreateAdminBody, first_error_message

logger = logging.getLogger("shop.create_admin")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("--name", default="Admin User")
    parser.add_argument("--email", default="admin@shop.com")
    parser.add_argument("--password", default="admin123")
    args = parser.parse_args(argv)

    try:
        body = CreateAdminBody(name=args.name, email=args.email, password=args.password)
    except PydanticValidationError as e:
        logger.error("Invalid admin details: %s", first_error_message(e))
        return 1

    try:
        database.ensure_indexes()
        result = users.create_admin(body.name, body.email, body.password)
    except AppError as e:
        logger.error("Could not create admin: %s", e.message)
        return 1
    logger.info("Admin user %s created", result["user"]["email"])
    print(result["token"])
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    sys.exit(main())
