"""
utils package
-------------

Contains utility modules used throughout the scheduling engine.

Includes helpers for configuration constants, local date/time parsing and
formatting, input validation, and logging.
"""
