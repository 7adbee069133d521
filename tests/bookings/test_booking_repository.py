from datetime import timedelta

from conference_service import models
from conference_service.booking_repository import BookingRepository, CancelOutcome
from conference_service.intervals import utcnow


def test_create_persists_booking(db, make_user, make_room, tomorrow_at):
    user, room = make_user(), make_room()
    repo = BookingRepository(db)

    booking = repo.create(
        models.Booking(
            room_id=room.id,
            user_id=user.id,
            start_date=tomorrow_at(9),
            end_date=tomorrow_at(10),
        )
    )

    assert booking.id is not None
    assert booking.status == models.BookingStatus.CONFIRMED
    assert repo.get_by_id(booking.id).room_id == room.id


def test_exists_conflict(db, make_user, make_room, make_booking, tomorrow_at):
    user = make_user()
    room_a, room_b = make_room("Room A"), make_room("Room B")
    make_booking(room_a, user, tomorrow_at(9), tomorrow_at(10))
    repo = BookingRepository(db)

    assert repo.exists_conflict(room_a.id, tomorrow_at(9, 30), tomorrow_at(10, 30))
    assert repo.exists_conflict(room_a.id, tomorrow_at(8), tomorrow_at(12))
    assert not repo.exists_conflict(room_a.id, tomorrow_at(10), tomorrow_at(11))
    assert not repo.exists_conflict(room_a.id, tomorrow_at(8), tomorrow_at(9))
    assert not repo.exists_conflict(room_b.id, tomorrow_at(9), tomorrow_at(10))


def test_exists_conflict_ignores_canceled_and_excluded(db, make_user, make_room, make_booking, tomorrow_at):
    user, room = make_user(), make_room()
    booking = make_booking(room, user, tomorrow_at(9), tomorrow_at(10))
    repo = BookingRepository(db)

    assert not repo.exists_conflict(
        room.id, tomorrow_at(9), tomorrow_at(10), ignore_booking_id=booking.id
    )

    booking.status = models.BookingStatus.CANCELED
    db.commit()
    assert not repo.exists_conflict(room.id, tomorrow_at(9), tomorrow_at(10))


def test_cancel_returns_tagged_outcome(db, make_user, make_room, make_booking, tomorrow_at):
    booking = make_booking(make_room(), make_user(), tomorrow_at(9), tomorrow_at(10))
    repo = BookingRepository(db)

    assert repo.cancel(booking.id) is CancelOutcome.DELETED
    assert repo.get_by_id(booking.id) is None
    assert repo.cancel(booking.id) is CancelOutcome.NOT_FOUND


def test_get_all_and_for_user(db, make_user, make_room, make_booking, tomorrow_at):
    alice, bob = make_user(), make_user()
    room = make_room()
    later = make_booking(room, alice, tomorrow_at(13), tomorrow_at(14))
    earlier = make_booking(room, alice, tomorrow_at(9), tomorrow_at(10))
    make_booking(room, bob, tomorrow_at(11), tomorrow_at(12))
    repo = BookingRepository(db)

    assert len(repo.get_all()) == 3
    assert [b.id for b in repo.get_all_for_user(alice.id)] == [earlier.id, later.id]
    assert len(repo.get_all(room_id=room.id, user_id=bob.id)) == 1


def test_has_future_bookings(db, make_user, make_room, make_booking):
    user, room = make_user(), make_room()
    now = utcnow()
    make_booking(room, user, now - timedelta(days=2), now - timedelta(days=2, hours=-1))
    repo = BookingRepository(db)

    assert not repo.has_future_bookings(room.id, now)

    make_booking(room, user, now + timedelta(hours=1), now + timedelta(hours=2))
    assert repo.has_future_bookings(room.id, now)


def test_lock_room_reports_missing_room(db, make_room):
    room = make_room()
    repo = BookingRepository(db)

    assert repo.lock_room(room.id)
    assert not repo.lock_room(room.id + 100)
    db.rollback()


def test_deleting_a_user_removes_their_bookings(db, make_user, make_room, make_booking, tomorrow_at):
    from conference_service.user_repository import UserRepository

    user, room = make_user(), make_room()
    make_booking(room, user, tomorrow_at(9), tomorrow_at(10))

    assert UserRepository(db).delete(user.id)
    assert BookingRepository(db).get_all() == []
    assert not UserRepository(db).delete(user.id)
