"""
Test suite for the Doctor Booking Service.

Contains unit tests for the booking protocol and API tests for every router.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
