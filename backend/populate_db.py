import os
import json
import logging

# Add 'backend' folder to Python path
import sys
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from database import SessionLocal, init_db
from models.users import User
from utils.tokenJWT import create_access_token

logger = logging.getLogger(__name__)

# Configuration
DEMO_USERS = [
    {"email": "admin@grupaeltron.pl", "name": "Administrator", "role": "admin", "is_admin": "1"},
    {"email": "magazyn.bialystok@grupaeltron.pl", "name": "Magazyn Białystok", "role": "magazyn_bialystok"},
    {"email": "magazyn.zielonka@grupaeltron.pl", "name": "Magazyn Zielonka", "role": "magazyn_zielonka"},
    {"email": "handlowiec@grupaeltron.pl", "name": "Jan Handlowiec", "role": "handlowiec"},
    {
        "email": "kierownik.budowy@grupaeltron.pl",
        "name": "Kierownik Budowy",
        "role": "kierownik",
        "permissions": {"transport_requests": {"add": True}, "spedycja": {"edit": True}},
    },
]
# End Configuration

def seed_users():
    """Creates demo accounts (idempotent) and prints a session token for each."""
    init_db()
    session = SessionLocal()
    try:
        for data in DEMO_USERS:
            user = session.query(User).filter(User.email == data["email"]).first()
            if user:
                logger.info(f"User {data['email']} already exists, skipping")
                continue
            permissions = data.get("permissions")
            session.add(User(
                email=data["email"],
                name=data["name"],
                role=data["role"],
                is_admin=data.get("is_admin"),
                permissions=json.dumps(permissions) if permissions else None,
            ))
        session.commit()

        for data in DEMO_USERS:
            token = create_access_token(data={"sub": data["email"]})
            print(f"{data['email']:40} {token}")
    finally:
        session.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed_users()
