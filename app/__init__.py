"""
Doctor Booking Service

A FastAPI-based doctor appointment platform: patients lock a slot, confirm
with an emailed one-time passcode, and book; doctors publish availability.
"""

__version__ = "1.0.0"
