"""
Core library: filtering, geolocation, storage and map rendering
"""
