"""
SEO Integrations Sync
OAuth connections and scheduled data sync for Search Console and GA4
"""

__version__ = "1.0.0"
