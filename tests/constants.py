import datetime as dt

USD = "USD"
EUR = "EUR"
BRL = "BRL"
GBP = "GBP"

CHECKING = "checking"
SAVINGS = "savings"
BROKERAGE = "brokerage"

JAN_1 = dt.date(2024, 1, 1)
JAN_2 = dt.date(2024, 1, 2)
JAN_3 = dt.date(2024, 1, 3)
FEB_1 = dt.date(2024, 2, 1)
