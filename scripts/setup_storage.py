#!/usr/bin/env python3
"""
S3 bucket setup for the academy portal.

Creates a private bucket for lecture videos and submission attachments and
prints the variables to add to .env.

Prerequisites:
- AWS credentials configured (aws configure)
- boto3 installed
"""

import argparse
import secrets
import sys

import boto3
from botocore.exceptions import ClientError, NoCredentialsError


def generate_bucket_name() -> str:
    """Generate a unique S3 bucket name."""
    return f"academy-media-{secrets.token_hex(4)}"


def create_bucket(bucket_name: str, region: str = "us-east-1") -> dict:
    """Create a private bucket that browsers can read through presigned URLs."""
    s3 = boto3.client("s3", region_name=region)

    try:
        if region == "us-east-1":
            s3.create_bucket(Bucket=bucket_name)
        else:
            s3.create_bucket(
                Bucket=bucket_name,
                CreateBucketConfiguration={"LocationConstraint": region},
            )
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "")
        if error_code not in {"BucketAlreadyExists", "BucketAlreadyOwnedByYou"}:
            print(f"❌ Error creating S3 bucket: {e}")
            raise
        print(f"⚠️  Bucket '{bucket_name}' already exists. Using existing bucket.")

    s3.put_public_access_block(
        Bucket=bucket_name,
        PublicAccessBlockConfiguration={
            "BlockPublicAcls": True,
            "IgnorePublicAcls": True,
            "BlockPublicPolicy": True,
            "RestrictPublicBuckets": True,
        },
    )
    # The player and audio elements fetch media cross-origin via presigned URLs.
    s3.put_bucket_cors(
        Bucket=bucket_name,
        CORSConfiguration={
            "CORSRules": [
                {
                    "AllowedMethods": ["GET", "HEAD"],
                    "AllowedOrigins": ["*"],
                    "AllowedHeaders": ["*"],
                    "MaxAgeSeconds": 3600,
                }
            ]
        },
    )
    print(f"✅ S3 bucket '{bucket_name}' ready in {region}")
    return {"bucket_name": bucket_name, "region": region}


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the academy media bucket.")
    parser.add_argument("--bucket", default=None, help="Bucket name (generated when omitted).")
    parser.add_argument("--region", default="us-east-1")
    args = parser.parse_args()

    try:
        result = create_bucket(args.bucket or generate_bucket_name(), args.region)
    except NoCredentialsError:
        print("❌ ERROR: AWS credentials not found. Run: aws configure")
        return 1
    except ClientError:
        return 1

    print("\nAdd these to your .env file:")
    print(f"AWS_REGION={result['region']}")
    print(f"AWS_S3_BUCKET_NAME={result['bucket_name']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
