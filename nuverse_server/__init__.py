"""
NuVerse session server.
"""
