"""Seed a developer account, the role that manages the subscription."""

import os

from app import create_app
from models import db
from models.user import User

DEVELOPER_USERNAME = os.getenv("DEVELOPER_USERNAME", "developer")
DEVELOPER_PASSWORD = os.getenv("DEVELOPER_PASSWORD", "DeveloperPass123")


def main() -> None:
    app = create_app()
    with app.app_context():
        developer = User.query.filter_by(username=DEVELOPER_USERNAME).first()
        if developer is None:
            developer = User(
                username=DEVELOPER_USERNAME,
                name="Developer",
                role="developer",
                is_active=True,
            )
            developer.set_password(DEVELOPER_PASSWORD)
            db.session.add(developer)
            action = "created"
        else:
            developer.role = "developer"
            developer.is_active = True
            developer.set_password(DEVELOPER_PASSWORD)
            action = "updated"
        db.session.commit()
        print(f"Developer user {action}: {DEVELOPER_USERNAME}")


if __name__ == "__main__":
    main()
