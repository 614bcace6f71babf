"""
Ticket Scanner
OCR core for Sri Dalada Maligawa entrance tickets: image preprocessing,
text recognition, OCR correction, field extraction, a quality gate and
the mapping to the ticket store payload.
"""

__version__ = "1.0.0"
