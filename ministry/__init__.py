"""
Data access and security core for the ministry website, served as a
FastAPI JSON API.
"""
