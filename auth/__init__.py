"""auth/ -- Authentication and authorization package for Warden.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/. The secret key and store settings are
passed in by the caller (api/main.py, main.py).
api/ imports from auth/, not the other way around.
"""
