"""
Command-line interface.
"""
