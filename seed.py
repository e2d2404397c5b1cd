"""
Idempotent seed-скрипт для демо-общежития.
Запуск:
  python seed.py --reset         # дропнуть и пересоздать БД + корпуса, жильцы, admin/admin
  python seed.py --ensure-admin  # создать только пользователя admin/admin (без сидов)
  python seed.py                 # мягкое наполнение недостающих данных (idempotent)
"""
import argparse

from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db
from models import Admin, Block, Resident, HostelBlock, BedType
from blueprints.inventory.services import grow_rooms
from blueprints.residents.services import register_resident

# корпус -> [(тип, сколько комнат)]
DEMO_INVENTORY = {
    HostelBlock.BLOCK1: [(BedType.FOUR, 6), (BedType.TWO, 4)],
    HostelBlock.BLOCK2: [(BedType.TWO, 5), (BedType.ONE, 3)],
    HostelBlock.BLOCK3: [(BedType.THREE, 4)],
}

# (имя, email, корпус, комната)
DEMO_RESIDENTS = [
    ("Asha Rao", "asha@hostel.edu", HostelBlock.BLOCK1, 1),
    ("Vikram Das", "vikram@hostel.edu", HostelBlock.BLOCK1, 7),
    ("Meera Iyer", "meera@hostel.edu", HostelBlock.BLOCK2, 5),
    ("Rohan Sen", "rohan@hostel.edu", HostelBlock.BLOCK3, 2),
]
DEMO_PASSWORD = "resident123"

def seed_inventory():
    """Комнаты добавляются только в корпуса, которых ещё нет."""
    created = 0
    for name, plan in DEMO_INVENTORY.items():
        if db.session.query(Block.id).filter(Block.name == name).first():
            continue
        for bed_type, count in plan:
            grow_rooms(name, count, bed_type)
            created += count
    return created

def seed_residents():
    created = 0
    for full_name, email, block, room in DEMO_RESIDENTS:
        if db.session.query(Resident.id).filter(Resident.email == email).first():
            continue
        register_resident(name=full_name, email=email, password=DEMO_PASSWORD,
                          block=block, room_number=room)
        created += 1
    return created

# ---- админ ----
def ensure_admin():
    if db.session.query(Admin.id).filter(Admin.username == "admin").first():
        return False
    db.session.add(Admin(username="admin", password_hash=generate_password_hash("admin")))
    db.session.commit()
    return True

# ---- main ----
def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--reset", action="store_true", help="drop + create + full seed (demo)")
    parser.add_argument("--ensure-admin", action="store_true", help="create only admin/admin")
    parser.add_argument("--config", default=None, help="config name: dev/test/prod")
    args = parser.parse_args()

    app = create_app(args.config)
    with app.app_context():
        if args.ensure_admin:
            db.create_all()
            created = ensure_admin()
            print("Admin created." if created else "Admin already exists.")
            return

        if args.reset:
            db.drop_all()
        db.create_all()
        rooms = seed_inventory()
        residents = seed_residents()
        ensure_admin()
        mode = "reset+seed" if args.reset else "soft seed"
        print(f"[seed] {mode} complete: {rooms} room(s), {residents} resident(s)")

if __name__ == "__main__":
    main()
