"""
Seed default staff accounts, a sample menu and the canteen settings.

Usage:
    python -m canteen.seeds.seed
    python -m canteen.seeds.seed --clear  # Remove users, menu and settings first
"""

import argparse
import sys

from sqlmodel import Session, delete, select

from canteen.db import create_db_and_tables, engine
from canteen.models import CanteenSettings, MenuItem, Role, User
from canteen.security import get_password_hash


DEFAULT_USERS = [
    {"username": "admin", "password": "admin123", "role": Role.admin, "full_name": "Canteen Admin"},
    {"username": "kitchen", "password": "kitchen123", "role": Role.kitchen, "full_name": "Kitchen Staff"},
]

# Prices in cents
MENU_DATA = [
    # Breakfast
    {"name": "Idli Sambar", "category": "Breakfast", "price_cents": 4000,
     "description": "Steamed rice cakes with sambar and chutney",
     "image": "https://images.unsplash.com/photo-1630383249896-424e482df921?w=400"},
    {"name": "Masala Dosa", "category": "Breakfast", "price_cents": 5000,
     "description": "Crispy rice crepe filled with spiced potato",
     "image": "https://images.unsplash.com/photo-1668236543090-82eba5ee5976?w=400"},
    {"name": "Poha", "category": "Breakfast", "price_cents": 3000,
     "description": "Flattened rice with vegetables and spices",
     "image": "https://images.unsplash.com/photo-1606491956689-2ea866880c84?w=400"},
    {"name": "Upma", "category": "Breakfast", "price_cents": 3500,
     "description": "Semolina porridge with vegetables",
     "image": "https://images.unsplash.com/photo-1589301773859-51d17b681ead?w=400"},
    # Lunch
    {"name": "Veg Thali", "category": "Lunch", "price_cents": 8000,
     "description": "Complete meal with rice, dal, vegetables, roti, and dessert",
     "image": "https://images.unsplash.com/photo-1546833998-877b37c2e5c6?w=400"},
    {"name": "Chole Bhature", "category": "Lunch", "price_cents": 7000,
     "description": "Spicy chickpeas with fried bread",
     "image": "https://images.unsplash.com/photo-1626074353765-517a681e40be?w=400"},
    {"name": "Paneer Butter Masala with Rice", "category": "Lunch", "price_cents": 9000,
     "description": "Cottage cheese in creamy tomato gravy with rice",
     "image": "https://images.unsplash.com/photo-1631452180519-c014fe946bc7?w=400"},
    {"name": "Biryani", "category": "Lunch", "price_cents": 10000,
     "description": "Fragrant rice with vegetables and spices",
     "image": "https://images.unsplash.com/photo-1563379091339-03b21ab4a4f8?w=400"},
    # Snacks
    {"name": "Samosa", "category": "Snacks", "price_cents": 2000,
     "description": "Fried pastry with spiced potato filling (2 pieces)",
     "image": "https://images.unsplash.com/photo-1601050690597-df0568f70950?w=400"},
    {"name": "Vada Pav", "category": "Snacks", "price_cents": 2500,
     "description": "Spicy potato fritter in a bun",
     "image": "https://images.unsplash.com/photo-1606491956689-2ea866880c84?w=400"},
    {"name": "Pav Bhaji", "category": "Snacks", "price_cents": 6000,
     "description": "Spiced vegetable mash with buttered bread",
     "image": "https://images.unsplash.com/photo-1606491956689-2ea866880c84?w=400"},
    {"name": "Sandwich", "category": "Snacks", "price_cents": 4000,
     "description": "Grilled vegetable sandwich",
     "image": "https://images.unsplash.com/photo-1528735602780-2552fd46c7af?w=400"},
    # Beverages
    {"name": "Tea", "category": "Beverages", "price_cents": 1000,
     "description": "Hot masala tea",
     "image": "https://images.unsplash.com/photo-1597318113393-862d96b7c13e?w=400"},
    {"name": "Coffee", "category": "Beverages", "price_cents": 1500,
     "description": "Hot filter coffee",
     "image": "https://images.unsplash.com/photo-1509042239860-f550ce710b93?w=400"},
    {"name": "Cold Coffee", "category": "Beverages", "price_cents": 3000,
     "description": "Chilled coffee with milk",
     "image": "https://images.unsplash.com/photo-1517487881594-2787fef5ebf7?w=400"},
    {"name": "Fresh Juice", "category": "Beverages", "price_cents": 3500,
     "description": "Seasonal fruit juice",
     "image": "https://images.unsplash.com/photo-1600271886742-f049cd451bba?w=400"},
]

DEFAULT_SETTINGS = {
    "canteen_name": "College Canteen",
    "upi_id": "canteen@oksbi",
    "upi_qr_code": "",
    "contact_phone": "1234567890",
}


def clear_seed_data(session: Session):
    for table in (User, MenuItem, CanteenSettings):
        session.execute(delete(table))
        print(f"✅ Cleared table: {table.__name__}")
    session.commit()


def seed_users(session: Session) -> int:
    created = 0
    for data in DEFAULT_USERS:
        existing = session.exec(select(User).where(User.username == data["username"])).first()
        if existing:
            print(f"ℹ️  User {data['username']} already exists, skipping")
            continue
        session.add(User(
            username=data["username"],
            hashed_password=get_password_hash(data["password"]),
            full_name=data["full_name"],
            role=data["role"],
        ))
        created += 1
    session.commit()
    return created


def seed_menu(session: Session) -> int:
    created = 0
    for data in MENU_DATA:
        existing = session.exec(select(MenuItem).where(MenuItem.name == data["name"])).first()
        if existing:
            continue
        session.add(MenuItem(**data, is_available=True))
        created += 1
    session.commit()
    return created


def seed_settings(session: Session) -> bool:
    if session.exec(select(CanteenSettings)).first():
        return False
    session.add(CanteenSettings(**DEFAULT_SETTINGS))
    session.commit()
    return True


def seed_all(clear_existing: bool = False):
    print("🌱 Seeding canteen data...")
    create_db_and_tables()

    with Session(engine) as session:
        if clear_existing:
            clear_seed_data(session)

        users = seed_users(session)
        print(f"✅ Created {users} user(s)")
        items = seed_menu(session)
        print(f"✅ Created {items} menu item(s)")
        if seed_settings(session):
            print("✅ Created default settings")
        else:
            print("ℹ️  Settings already present, skipping")

    print("\n✨ Database seeded successfully!")
    print("\nDefault credentials:")
    for data in DEFAULT_USERS:
        print(f"  {data['role'].value} - Username: {data['username']}, Password: {data['password']}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed default users, menu and settings")
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Remove existing users, menu items and settings before seeding"
    )
    args = parser.parse_args()

    try:
        seed_all(clear_existing=args.clear)
    except KeyboardInterrupt:
        print("\nSeeding interrupted by user")
        sys.exit(1)
