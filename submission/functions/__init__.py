"""
Azure Functions entry points
"""
