#!/usr/bin/env python3
"""
Booking and cancellation flow script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_book_and_cancel.py --token <JWT> --resource-id <UUID> \
        --start 2026-11-02T08:00:00Z --end 2026-11-02T10:00:00Z --amount 12.50

Flow:
    1. Check availability
    2. Create booking
    3. Initiate payment (prints the checkout URL)
    4. Read booking status
    5. Cancel booking
"""

import argparse
import json
import sys

import httpx

BASE_URL = "http://localhost:8000"


def api_request(token: str, method: str, endpoint: str, data: dict | None = None, params: dict | None = None) -> dict:
    """Make authenticated API request."""
    headers = {"Authorization": f"Bearer {token}"}
    response = httpx.request(
        method,
        f"{BASE_URL}{endpoint}",
        headers=headers,
        json=data,
        params=params,
        timeout=10.0,
        follow_redirects=True,
    )
    return {"status": response.status_code, "data": response.json() if response.text else {}}


def print_step(step: int, title: str):
    """Print step header."""
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def print_result(result: dict, fields: list[str] | None = None):
    """Print result, optionally filtering fields."""
    if result["status"] >= 400:
        print(f"ERROR ({result['status']}): {json.dumps(result['data'], indent=2)}")
        return False

    print(f"Status: {result['status']}")
    if fields:
        filtered = {k: result["data"].get(k) for k in fields if k in result["data"]}
        print(json.dumps(filtered, indent=2))
    else:
        print(json.dumps(result["data"], indent=2))
    return True


def main():
    parser = argparse.ArgumentParser(description="Booking and cancellation flow")
    parser.add_argument("--token", required=True, help="Renter bearer token")
    parser.add_argument("--resource-id", required=True, help="Parking space UUID")
    parser.add_argument("--start", required=True, help="Start, ISO 8601 UTC")
    parser.add_argument("--end", required=True, help="End, ISO 8601 UTC")
    parser.add_argument("--amount", default="10.00", help="Quoted total in major units")
    parser.add_argument("--currency", default="CHF", help="ISO currency code")
    parser.add_argument("--skip-payment", action="store_true", help="Cancel without opening checkout")
    args = parser.parse_args()

    # Step 1: Availability
    print_step(1, "Check availability")
    availability = api_request(args.token, "GET", "/api/v1/availability", params={
        "resource_id": args.resource_id,
        "start": args.start,
        "end": args.end,
    })
    if not print_result(availability):
        sys.exit(1)
    if not availability["data"].get("available"):
        print(f"Not available: {availability['data'].get('reason_code')}")
        sys.exit(1)

    # Step 2: Create booking
    print_step(2, "Create booking")
    created = api_request(args.token, "POST", "/api/v1/bookings", {
        "resource_id": args.resource_id,
        "start": args.start,
        "end": args.end,
        "total_amount": args.amount,
        "currency": args.currency,
    })
    if not print_result(created):
        sys.exit(1)
    booking_id = created["data"]["booking_id"]

    # Step 3: Payment
    if not args.skip_payment:
        print_step(3, "Initiate payment")
        checkout = api_request(args.token, "POST", f"/api/v1/bookings/{booking_id}/payment")
        if print_result(checkout):
            print(f"Open to pay: {checkout['data'].get('checkout_url')}")

    # Step 4: Status
    print_step(4, "Read booking")
    booking = api_request(args.token, "GET", f"/api/v1/bookings/{booking_id}")
    print_result(booking, ["status", "payment_status", "refund_status", "platform_fee_minor", "owner_payout_minor"])

    # Step 5: Cancel
    print_step(5, "Cancel booking")
    cancelled = api_request(args.token, "POST", f"/api/v1/bookings/{booking_id}/cancel", {"actor": "renter"})
    if not print_result(cancelled):
        sys.exit(1)

    print(f"\nDone. Booking {booking_id}")


if __name__ == "__main__":
    main()
