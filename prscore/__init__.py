"""
PR Score - scored, attributable contribution records for merged pull requests.
"""

__version__ = "0.1.0"
