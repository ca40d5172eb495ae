"""
Graph API connectors
"""
