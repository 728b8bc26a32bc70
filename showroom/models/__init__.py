"""Domain models for the Showroom Market backend."""
from .listing import Listing, ListingStatus, PayoutStatus, parse_amount

__all__ = ["Listing", "ListingStatus", "PayoutStatus", "parse_amount"]
