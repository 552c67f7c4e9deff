#!/usr/bin/env python3
"""
Bind a Search Console site or GA4 property to a project

A project must have at least one binding before it can sync.

Usage:
    python scripts/add_resource_binding.py --project 27 --provider gsc --resource sc-domain:example.com
    python scripts/add_resource_binding.py --project 27 --provider ga4 --resource 123456789 --name "Example.com"
"""
import sys
import argparse
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from seo_sync.errors import IntegrationError
from seo_sync.models.base import init_db
from seo_sync.services.binding_store import ResourceBindingStore


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Bind a provider resource to a project")
    parser.add_argument("--project", type=int, required=True, help="Project id")
    parser.add_argument("--provider", required=True, choices=["gsc", "ga4"])
    parser.add_argument("--resource", required=True, help="Site url (gsc) or numeric property id (ga4)")
    parser.add_argument("--name", default=None, help="GA4 property display name")
    parser.add_argument("--permission", default=None, help="GSC permission level, e.g. siteOwner")
    args = parser.parse_args(argv)

    init_db()
    store = ResourceBindingStore()

    try:
        binding = store.add(
            args.project,
            args.provider,
            args.resource,
            display_name=args.name,
            permission_level=args.permission,
        )
    except IntegrationError as e:
        print(f"✗ {e.code}: {e.message}")
        return 1

    print(f"✓ {binding.provider.value} {binding.resource_id} bound to project {binding.project_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
