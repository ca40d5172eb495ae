"""
Indicator models and API response schemas
"""
