"""
salonbook - appointment booking for salons on top of a Supabase backend.
"""

__version__ = "0.1.0"
