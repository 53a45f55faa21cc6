import datetime as dt
import unittest

from tucing.bookings.models import Booking, ServiceType
from tucing.bookings.slots import assign_positions, bookings_for_date, month_grid


def boarding(booking_id: str, start: str, end: str, cat: str = "Milo") -> Booking:
    return Booking(
        id=booking_id,
        service_type=ServiceType.BOARDING,
        cat_name=cat,
        owner_name="Aina",
        start_date=dt.date.fromisoformat(start),
        end_date=dt.date.fromisoformat(end),
    )


def grooming(booking_id: str, day: str, cat: str = "Luna") -> Booking:
    return Booking(
        id=booking_id,
        service_type=ServiceType.GROOMING,
        cat_name=cat,
        owner_name="Farid",
        start_date=dt.date.fromisoformat(day),
    )


class SlotAssignmentTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.bookings = [
            grooming("g1", "2024-06-02"),
            boarding("b1", "2024-06-01", "2024-06-03"),
            grooming("g2", "2024-06-02"),
            boarding("b2", "2024-06-02", "2024-06-05"),
        ]

    def test_empty_set(self) -> None:
        self.assertEqual(assign_positions([]), {})
        self.assertEqual(bookings_for_date([], dt.date(2024, 6, 1)), [])

    def test_boarding_takes_lowest_positions(self) -> None:
        positions = assign_positions(self.bookings)
        self.assertEqual(positions, {"b1": 0, "b2": 1, "g1": 2, "g2": 3})

    def test_assignment_is_repeatable(self) -> None:
        self.assertEqual(assign_positions(self.bookings), assign_positions(list(self.bookings)))

    def test_duplicate_ids_keep_first_position(self) -> None:
        positions = assign_positions(self.bookings + [self.bookings[1]])
        self.assertEqual(positions["b1"], 0)
        self.assertEqual(len(positions), 4)

    def test_boarding_inserted_earlier_gets_lower_position(self) -> None:
        bookings = [boarding(f"b{i}", "2024-06-01", "2024-06-02") for i in range(5)]
        positions = assign_positions(bookings)
        for earlier, later in zip(bookings, bookings[1:]):
            self.assertLess(positions[earlier.id], positions[later.id])

    def test_boarding_range_is_inclusive(self) -> None:
        milo = boarding("milo", "2024-06-01", "2024-06-03")
        for day in ("2024-06-01", "2024-06-02", "2024-06-03"):
            self.assertIn(milo, bookings_for_date([milo], dt.date.fromisoformat(day)))
        for day in ("2024-05-31", "2024-06-04"):
            self.assertNotIn(milo, bookings_for_date([milo], dt.date.fromisoformat(day)))

    def test_grooming_only_on_its_day(self) -> None:
        luna = grooming("luna", "2024-06-10")
        self.assertEqual(bookings_for_date([luna], dt.date(2024, 6, 10)), [luna])
        self.assertEqual(bookings_for_date([luna], dt.date(2024, 6, 11)), [])

    def test_day_order_and_truncation(self) -> None:
        day = dt.date(2024, 6, 2)
        shown = bookings_for_date(self.bookings, day)
        self.assertEqual([b.id for b in shown], ["b1", "b2", "g1"])
        everything = bookings_for_date(self.bookings, day, limit=None)
        self.assertEqual([b.id for b in everything], ["b1", "b2", "g1", "g2"])

    def test_boarding_keeps_its_row_across_days(self) -> None:
        positions = assign_positions(self.bookings)
        first = bookings_for_date(self.bookings, dt.date(2024, 6, 3), positions)
        later = bookings_for_date(self.bookings, dt.date(2024, 6, 4), positions)
        self.assertEqual([b.id for b in first], ["b1", "b2"])
        self.assertEqual([b.id for b in later], ["b2"])

    def test_boarding_without_end_date_counts_as_one_day(self) -> None:
        legacy = Booking(
            id="legacy",
            service_type=ServiceType.BOARDING,
            cat_name="Oyen",
            owner_name="Siti",
            start_date=dt.date(2024, 6, 8),
        )
        self.assertEqual(bookings_for_date([legacy], dt.date(2024, 6, 8)), [legacy])
        self.assertEqual(bookings_for_date([legacy], dt.date(2024, 6, 9)), [])


class MonthGridTestCase(unittest.TestCase):
    def test_june_2024_layout(self) -> None:
        milo = boarding("milo", "2024-05-30", "2024-06-02")
        weeks = month_grid(2024, 6, [milo], today=dt.date(2024, 6, 15))
        # June 2024 starts on a Saturday
        first_week = weeks[0]
        self.assertEqual(first_week[:6], [None] * 6)
        self.assertEqual(first_week[6].date, dt.date(2024, 6, 1))
        self.assertEqual(first_week[6].bookings, [milo])
        self.assertEqual(first_week[6].empty_slots, 2)
        cells = [cell for week in weeks for cell in week if cell]
        self.assertEqual(len(cells), 30)
        self.assertEqual([cell.day for cell in cells if cell.is_today], [15])
        self.assertEqual([cell.day for cell in cells if cell.bookings], [1, 2])


if __name__ == "__main__":
    unittest.main()
