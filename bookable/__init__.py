"""
bookable - Find which meeting starts fit an owner's weekly availability.
"""

__version__ = "0.1.0"
