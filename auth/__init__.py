"""auth/ -- Authentication, password history and token issuance for Aquarium Monitor.

Layer rule: auth/ imports only core/ + stdlib + third-party libraries.
It does NOT import from api/ or records/.
api/ imports from auth/, not the other way around.
"""
