"""lendingdesk: circulation desk for a small institutional library.

Tracks items, holders and their accounts, and enforces the lending rules
for borrowing, returns, reservations and overdue fines.
"""

__version__ = "0.1.0"
