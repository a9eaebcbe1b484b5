#!/usr/bin/env python3
"""
Script: create_tables.py
Description: Provision the hookrelay DynamoDB tables.

Creates the queue, delivery log, trigger schema and destination tables
(with their status indexes) if they do not exist yet. Existing tables
are left untouched.

Usage:
    python scripts/create_tables.py [--endpoint-url http://localhost:8000] [--region us-east-1]

This script requires AWS credentials (or DynamoDB Local).
"""

import argparse
import sys

from botocore.exceptions import ClientError

from hookrelay.config.settings import settings
from hookrelay.storage.base import create_dynamodb_resource
from hookrelay.storage.tables import ensure_tables
from hookrelay.utils.logger import get_logger

logger = get_logger(__name__)


def main():
    """Main script execution."""
    parser = argparse.ArgumentParser(
        description="Create the hookrelay DynamoDB tables",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/create_tables.py
  python scripts/create_tables.py --endpoint-url http://localhost:8000
        """
    )

    parser.add_argument(
        '--endpoint-url',
        type=str,
        default=None,
        help='DynamoDB endpoint (e.g. DynamoDB Local)'
    )

    parser.add_argument(
        '--region',
        type=str,
        default=None,
        help='AWS region (defaults to AWS_REGION / settings)'
    )

    args = parser.parse_args()

    overrides = {}
    if args.endpoint_url:
        overrides['dynamodb_endpoint_url'] = args.endpoint_url
    if args.region:
        overrides['aws_region'] = args.region
    config = settings.model_copy(update=overrides)

    try:
        dynamodb = create_dynamodb_resource(config)
        created = ensure_tables(dynamodb, config)
    except ClientError as e:
        logger.error(
            "Failed to create tables",
            error_code=e.response['Error']['Code'],
            error_message=e.response['Error']['Message']
        )
        print(f"❌ Failed to create tables: {e}")
        sys.exit(1)

    if created:
        for name in created:
            print(f"✅ Created table {name}")
    else:
        print("All tables already exist.")


if __name__ == "__main__":
    main()
