"""
Incident lifecycle services.
"""
