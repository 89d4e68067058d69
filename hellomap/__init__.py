"""
hellomap - Say Hello From the World

A small persisted ledger of which country each participant claims,
and the README / world-map views derived from it.
"""

__version__ = "3.0.0"
