"""Reset the subscription record to its empty, inactive state in place."""

from app import create_app
from models import db
from services.subscription_store import SubscriptionStore


def main() -> None:
    app = create_app()
    with app.app_context():
        db.create_all()
        record = SubscriptionStore().reset()
        print(f"Subscription state: {record.to_dict()}")


if __name__ == "__main__":
    main()
