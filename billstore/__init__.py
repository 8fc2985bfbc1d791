"""
billstore - Bill Record Persistence

Keeps the billing UI's bill records in a string-keyed persistent store,
one JSON array per collection.

DESIGN PRINCIPLES:
1. One generic store, two record shapes
2. id, invoice number and creation time never change
3. Every read-modify-write holds the slot's lock
4. Every change is auditable
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "billstore Team"
