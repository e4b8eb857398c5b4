"""auth/ -- Authentication and authorization package for Monitorium.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or cache/ (the cache is injected into
UserService by the application lifespan).
api/ imports from auth/, not the other way around.
"""
