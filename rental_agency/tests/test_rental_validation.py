import unittest
from datetime import date

from rental_agency.services.rental_validation import (
    RentalInterval,
    check_rental_overlap,
    format_date_range,
    rentals_overlap,
)


class RentalsOverlapTests(unittest.TestCase):
    def test_closed_intervals_touching_on_a_day_overlap(self):
        self.assertTrue(rentals_overlap(date(2024, 1, 1), date(2024, 1, 10), date(2024, 1, 10), date(2024, 1, 20)))

    def test_closed_intervals_apart_do_not_overlap(self):
        self.assertFalse(rentals_overlap(date(2024, 1, 1), date(2024, 1, 10), date(2024, 1, 11), date(2024, 1, 20)))

    def test_ongoing_existing_blocks_later_and_open_candidates(self):
        existing_from = date(2024, 1, 10)
        self.assertFalse(rentals_overlap(existing_from, None, date(2024, 1, 1), date(2024, 1, 9)))
        self.assertTrue(rentals_overlap(existing_from, None, date(2024, 1, 1), date(2024, 1, 10)))
        self.assertTrue(rentals_overlap(existing_from, None, date(2023, 6, 1), None))
        self.assertTrue(rentals_overlap(existing_from, None, date(2025, 6, 1), None))

    def test_open_candidate_against_closed_existing(self):
        self.assertTrue(rentals_overlap(date(2024, 1, 1), date(2024, 1, 31), date(2024, 1, 31), None))
        self.assertTrue(rentals_overlap(date(2024, 1, 1), date(2024, 1, 31), date(2023, 12, 1), None))
        self.assertFalse(rentals_overlap(date(2024, 1, 1), date(2024, 1, 31), date(2024, 2, 1), None))

    def test_relation_is_symmetric_for_closed_intervals(self):
        pairs = [
            ((date(2024, 1, 1), date(2024, 1, 5)), (date(2024, 1, 5), date(2024, 1, 9))),
            ((date(2024, 1, 1), date(2024, 1, 5)), (date(2024, 1, 6), date(2024, 1, 9))),
            ((date(2024, 1, 1), date(2024, 3, 1)), (date(2024, 2, 1), date(2024, 2, 2))),
        ]
        for (a_from, a_to), (b_from, b_to) in pairs:
            self.assertEqual(
                rentals_overlap(a_from, a_to, b_from, b_to),
                rentals_overlap(b_from, b_to, a_from, a_to),
            )


class CheckRentalOverlapTests(unittest.TestCase):
    def setUp(self):
        self.existing = [
            RentalInterval(1, date(2024, 1, 1), date(2024, 1, 31), "Ada Lovelace"),
            RentalInterval(2, date(2024, 3, 1), None, "Alan Turing"),
        ]

    def test_returns_first_conflict_in_order(self):
        result = check_rental_overlap(self.existing, date(2024, 1, 15), None)
        self.assertTrue(result.has_overlap)
        self.assertEqual(result.conflict.rental_id, 1)

    def test_gap_between_rentals_is_free(self):
        result = check_rental_overlap(self.existing, date(2024, 2, 1), date(2024, 2, 29))
        self.assertFalse(result.has_overlap)
        self.assertIsNone(result.conflict)
        self.assertEqual(result.to_dict(), {"hasOverlap": False})

    def test_repeated_checks_give_the_same_answer(self):
        first = check_rental_overlap(self.existing, date(2024, 4, 1), date(2024, 4, 2))
        second = check_rental_overlap(self.existing, date(2024, 4, 1), date(2024, 4, 2))
        self.assertEqual(first, second)
        self.assertEqual(first.to_dict()["overlappingRental"]["customerName"], "Alan Turing")

    def test_empty_history_never_conflicts(self):
        self.assertFalse(check_rental_overlap([], date(2024, 1, 1), None).has_overlap)


class FormatDateRangeTests(unittest.TestCase):
    def test_ongoing_and_closed(self):
        self.assertEqual(format_date_range(date(2024, 1, 10), None), "2024-01-10 - ongoing")
        self.assertEqual(format_date_range(date(2024, 1, 10), date(2024, 2, 1)), "2024-01-10 - 2024-02-01")


if __name__ == "__main__":
    unittest.main()
