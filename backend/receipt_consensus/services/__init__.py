"""
Services: scanning sessions and their drivers.
"""
