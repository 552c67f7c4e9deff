"""Provider connectors: OAuth token endpoint and per-provider sync clients"""
