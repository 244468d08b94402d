"""
Pleasure Holidays booking API
"""
