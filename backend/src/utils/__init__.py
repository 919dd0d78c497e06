"""
Utility modules for the reservation application.

This package contains shared helpers used across the application, including
calendar date handling and reservation listing queries.
"""
