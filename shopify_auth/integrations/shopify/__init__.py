"""Shopify OAuth integration."""
