"""
Coupon Book Kernel

Core of the school-fundraising coupon-book marketplace:
- Rule-based user targeting for coupon grants
- Balanced double-entry journal entries for every money movement
- Atomic persistence of journal entries and coupon grants
"""

__version__ = "0.1.0"
