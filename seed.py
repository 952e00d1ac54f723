"""
Create the database tables and seed the developer personas.

Personas (password "password123"):
  alice@dev.example.com    verified, with sample conversations
  bob@dev.example.com      verified, no data
  charlie@dev.example.com  unverified

Usage: python seed.py [--reset]
"""
import argparse
import logging
import os
import sys

from database import SessionLocal, init_db
from services.personas import PersonaService

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed dev personas and sample conversations.")
    parser.add_argument("--reset", action="store_true", help="remove existing persona data first")
    args = parser.parse_args(argv)

    if os.getenv("ENVIRONMENT", "development") == "production":
        logger.error("Refusing to seed a production database")
        return 1

    init_db()

    db = SessionLocal()
    try:
        if args.reset:
            PersonaService.reset_personas(db)
        created = PersonaService.seed_personas(db)
    finally:
        db.close()

    print(
        f"✓ Seeded {created['users']} users, {created['conversations']} conversations, "
        f"{created['messages']} messages"
    )
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
