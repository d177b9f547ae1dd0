"""auth/ -- Session tokens and password hashing for Inkwell.

Layer rule: auth/ may import from core/ (the kernel) but never from api/ or
storage/. api/ imports from auth/, not the other way around.
"""
