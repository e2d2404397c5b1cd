from __future__ import annotations
import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db
from models import Admin, Block, HostelBlock, BedType
from blueprints.auth.routes import reset_rate_limits
from blueprints.core.errors import CapacityError, NotFoundError, ValidationError
from blueprints.inventory import services as svc
from blueprints.residents.services import register_resident

@pytest.fixture()
def app_ctx():
    app = create_app("test")
    reset_rate_limits()
    with app.app_context():
        db.create_all()
        db.session.add(Admin(username="warden", password_hash=generate_password_hash("wardenpass")))
        db.session.commit()
        yield app
        db.drop_all()

def _numbers(block: Block, bed_type: BedType | None = None) -> list[int]:
    return sorted(r.number for r in block.rooms if bed_type is None or r.bed_type == bed_type)

def login_admin(client):
    r = client.post("/api/v1/auth/admin/login", json={"username": "warden", "password": "wardenpass"})
    assert r.status_code == 200

# ---------- grow ----------
def test_grow_creates_block_lazily(app_ctx):
    b = svc.grow_rooms("block3", 3, "3 bedded")
    assert b.name == HostelBlock.BLOCK3
    assert b.total_rooms == 3
    assert _numbers(b) == [1, 2, 3]
    assert all(r.available_beds == 3 for r in b.rooms)

def test_grow_appends_consecutive_numbers(app_ctx):
    svc.grow_rooms("block1", 2, "4 bedded")
    b = svc.grow_rooms("block1", 3, "2 bedded")
    assert b.total_rooms == 5
    assert _numbers(b, BedType.TWO) == [3, 4, 5]
    assert {r.number: r.available_beds for r in b.rooms} == {1: 4, 2: 4, 3: 2, 4: 2, 5: 2}

@pytest.mark.parametrize("count", [0, -2, True, "3", 1.5])
def test_grow_rejects_bad_count(app_ctx, count):
    with pytest.raises(ValidationError):
        svc.grow_rooms("block1", count, "1 bedded")
    assert db.session.query(Block).count() == 0

def test_grow_rejects_unknown_enums(app_ctx):
    with pytest.raises(ValidationError):
        svc.grow_rooms("block9", 1, "1 bedded")
    with pytest.raises(ValidationError):
        svc.grow_rooms("block1", 1, "5 bedded")

# ---------- shrink ----------
def test_shrink_removes_highest_numbers_of_type(app_ctx):
    svc.grow_rooms("block1", 5, "2 bedded")     # 1..5
    svc.grow_rooms("block1", 2, "4 bedded")     # 6..7
    b = svc.shrink_rooms("block1", 2, "2 bedded")
    assert b.total_rooms == 5
    assert _numbers(b, BedType.TWO) == [1, 2, 3]
    # 4-местные не тронуты, номера не перенумерованы
    assert _numbers(b, BedType.FOUR) == [6, 7]

def test_shrink_over_capacity_leaves_block_unchanged(app_ctx):
    svc.grow_rooms("block2", 2, "1 bedded")
    with pytest.raises(CapacityError) as ei:
        svc.shrink_rooms("block2", 3, "1 bedded")
    err = ei.value
    assert err.available == 2 and err.requested == 3
    assert "Available: 2, Requested: 3" in err.message

    b = svc.get_block("block2")
    assert b.total_rooms == 2
    assert _numbers(b) == [1, 2]

def test_shrink_unknown_block_not_found(app_ctx):
    with pytest.raises(NotFoundError):
        svc.shrink_rooms("block7", 1, "1 bedded")

def test_shrink_skips_occupied_rooms(app_ctx):
    svc.grow_rooms("block1", 3, "2 bedded")     # 1..3
    register_resident(name="Asha", email="asha@uni.edu", password="secret1",
                      block="block1", room_number=3)
    b = svc.shrink_rooms("block1", 1, "2 bedded")
    # комната 3 заселена - уходит следующая по старшинству
    assert _numbers(b) == [1, 3]

    with pytest.raises(CapacityError) as ei:
        svc.shrink_rooms("block1", 2, "2 bedded")
    assert ei.value.details["occupied_rooms"] == [3]
    assert _numbers(svc.get_block("block1")) == [1, 3]

def test_numbering_never_collides_after_grow_shrink(app_ctx):
    svc.grow_rooms("block4", 3, "1 bedded")     # 1..3
    svc.grow_rooms("block4", 2, "3 bedded")     # 4..5
    svc.shrink_rooms("block4", 2, "1 bedded")   # остаются 1, 4, 5
    b = svc.grow_rooms("block4", 2, "1 bedded")
    numbers = [r.number for r in b.rooms]
    assert len(numbers) == len(set(numbers))
    assert b.total_rooms == len(numbers) == 5

def test_total_rooms_tracks_signed_deltas(app_ctx):
    total = 0
    for op, n, bt in [("grow", 4, "2 bedded"), ("grow", 2, "1 bedded"),
                      ("shrink", 3, "2 bedded"), ("grow", 1, "2 bedded"), ("shrink", 2, "1 bedded")]:
        if op == "grow":
            svc.grow_rooms("block5", n, bt)
            total += n
        else:
            svc.shrink_rooms("block5", n, bt)
            total -= n
        b = svc.get_block("block5")
        assert b.total_rooms == total == len(b.rooms)
        assert b.total_rooms >= 0

def test_block_summary_counts_beds(app_ctx):
    svc.grow_rooms("block6", 2, "4 bedded")
    svc.grow_rooms("block6", 1, "1 bedded")
    register_resident(name="Ravi", email="ravi@uni.edu", password="secret1",
                      block="block6", room_number=1, bed_type="4 bedded")
    s = svc.block_summary("block6")
    assert s.total_rooms == 3
    assert s.by_bed_type["4 bedded"].rooms == 2
    assert s.by_bed_type["4 bedded"].total_beds == 8
    assert s.by_bed_type["4 bedded"].free_beds == 7
    assert s.by_bed_type["2 bedded"].rooms == 0

# ---------- API ----------
def test_inventory_api_requires_login(app_ctx):
    c = app_ctx.test_client()
    r = c.post("/api/v1/admin/rooms/increase", json={"block": "block1", "count": 1, "bed_type": "1 bedded"})
    assert r.status_code == 401
    assert r.get_json()["error"] == "unauthorized"

def test_inventory_api_forbidden_for_resident(app_ctx):
    svc.grow_rooms("block1", 1, "2 bedded")
    register_resident(name="Asha", email="asha@uni.edu", password="secret1",
                      block="block1", room_number=1)
    c = app_ctx.test_client()
    r = c.post("/api/v1/auth/resident/login", json={"email": "asha@uni.edu", "password": "secret1"})
    assert r.status_code == 200
    r = c.post("/api/v1/admin/rooms/increase", json={"block": "block1", "count": 1, "bed_type": "1 bedded"})
    assert r.status_code == 403

def test_inventory_api_increase_decrease(app_ctx):
    c = app_ctx.test_client()
    login_admin(c)
    r = c.post("/api/v1/admin/rooms/increase", json={"block": "block1", "count": 3, "bed_type": "4 bedded"})
    assert r.status_code == 200
    js = r.get_json()
    assert js["block"]["total_rooms"] == 3
    assert [room["number"] for room in js["block"]["rooms"]] == [1, 2, 3]

    r = c.post("/api/v1/admin/rooms/decrease", json={"block": "block1", "count": 1, "bed_type": "4 bedded"})
    assert r.status_code == 200
    assert r.get_json()["message"] == "1 4 bedded room(s) removed from block1"

    r = c.post("/api/v1/admin/rooms/decrease", json={"block": "block1", "count": 5, "bed_type": "4 bedded"})
    assert r.status_code == 409
    js = r.get_json()
    assert js["error"] == "capacity_exceeded"
    assert js["detail"]["available"] == 2 and js["detail"]["requested"] == 5

def test_inventory_api_validation(app_ctx):
    c = app_ctx.test_client()
    login_admin(c)
    r = c.post("/api/v1/admin/rooms/increase", json={"block": "block1", "count": 0, "bed_type": "4 bedded"})
    assert r.status_code == 422
    assert r.get_json()["error"] == "validation_error"
    r = c.post("/api/v1/admin/rooms/increase", json={"block": "block1", "count": 1, "bed_type": "king"})
    assert r.status_code == 422

def test_inventory_api_blocks(app_ctx):
    svc.grow_rooms("block2", 2, "2 bedded")
    c = app_ctx.test_client()
    login_admin(c)
    r = c.get("/api/v1/admin/blocks")
    assert r.get_json()["items"] == [{"name": "block2", "total_rooms": 2}]
    r = c.get("/api/v1/admin/blocks/block2")
    assert r.status_code == 200
    assert r.get_json()["summary"]["by_bed_type"]["2 bedded"]["free_beds"] == 4
    r = c.get("/api/v1/admin/blocks/block8")
    assert r.status_code == 404
