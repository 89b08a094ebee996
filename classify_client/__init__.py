"""
Client classification service: client IP, country and API key gate
"""
