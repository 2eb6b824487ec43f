"""Fixed business dates shared by the test modules."""

from datetime import date

TODAY = date(2024, 5, 1)
DUE = date(2024, 6, 1)
