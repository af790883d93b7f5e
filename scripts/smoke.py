#!/usr/bin/env python3
"""
Smoke test for a running Shufflr instance
"""
import argparse
import os
import sys

import requests


def check(session, base_url, path, expected_status, headers=None, check_json=None):
    """Hit one endpoint and report whether it behaved"""
    url = f"{base_url}{path}"
    try:
        resp = session.get(url, headers=headers or {}, timeout=5, allow_redirects=False)
    except requests.RequestException as e:
        print(f"❌ {path}: error - {e}")
        return False

    if resp.status_code != expected_status:
        print(f"❌ {path}: expected status {expected_status}, got {resp.status_code}")
        return False

    if check_json:
        data = resp.json()
        for key, expected_value in check_json.items():
            if key not in data:
                print(f"❌ {path}: missing key '{key}' in response")
                return False
            if expected_value is not None and data[key] != expected_value:
                print(f"❌ {path}: expected {key}={expected_value}, got {data[key]}")
                return False

    print(f"✅ {path}: status {resp.status_code}")
    return True


def main():
    parser = argparse.ArgumentParser(description="Smoke test a running Shufflr instance")
    parser.add_argument("--base-url", default=os.getenv("BASE_URL", "http://127.0.0.1:8080"))
    parser.add_argument("--api-key", default=os.getenv("SHUFFLR_API_KEY"),
                        help="Key for the authenticated checks (skipped when absent)")
    args = parser.parse_args()
    base_url = args.base_url.rstrip("/")

    print("🚀 Running smoke tests against", base_url)
    session = requests.Session()
    checks = [
        ("/health", 200, None, {"status": "healthy", "image_count": None}),
        ("/", 303, None, None),
        ("/admin/images", 303, None, None),
        ("/metrics", 200, None, None),
    ]
    if args.api_key:
        checks.append(("/api/images?count=1", 200, {"X-API-Key": args.api_key}, {"count": 1}))
        checks.append(("/api/images?count=1", 401, {"X-API-Key": "invalid"}, None))

    failed = sum(1 for path, status, headers, body in checks
                 if not check(session, base_url, path, status, headers, body))

    if failed:
        print(f"💥 {failed} check(s) failed")
        return 1
    print("🎉 All smoke checks passed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
