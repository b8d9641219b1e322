"""
Visit Agenda: event resolution and scheduling conflict engine.

Turns dictated appointments into calendar create/update/cancel operations.
"""

__version__ = "0.1.0"
