"""Integration services: OAuth callback, token refresh and metric sync"""
