"""Business logic services.

Services hold the variant lifecycle and checkout logic and are called by
routes. They take the Shopify client and settings values as explicit
arguments so tests can inject fakes.
"""
