#!/usr/bin/env python3
"""
Booking lifecycle flow script against a running API.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Tokens are minted locally with the development JWT secret, standing in for
the identity service.

Usage:
    python scripts/flow_book_and_pay.py --room-id room-101 --tenant-id <UUID> \\
        --check-in 2026-06-01 --check-out 2026-06-03 --proof receipt.jpg

Flow:
    1. Create booking (guest)
    2. Upload payment proof (guest)
    3. Approve payment (tenant)
    4. Send reminder (tenant)
    5. Complete booking (system, only if checkout has passed)
"""

import argparse
import json
import sys
import uuid
from pathlib import Path

import httpx

from app.core.permissions import ActorRole
from app.core.security import create_actor_token

BASE_URL = "http://localhost:8000"


def api_request(
    token: str,
    method: str,
    endpoint: str,
    data: dict | None = None,
    files: dict | None = None,
) -> dict:
    """Make authenticated API request."""
    headers = {"Authorization": f"Bearer {token}"}
    url = f"{BASE_URL}{endpoint}"

    if method == "GET":
        response = httpx.get(url, headers=headers, timeout=10.0)
    elif method == "POST" and files:
        response = httpx.post(url, headers=headers, files=files, timeout=30.0)
    elif method == "POST":
        response = httpx.post(url, headers=headers, json=data or {}, timeout=10.0)
    else:
        raise ValueError(f"Unknown method: {method}")

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
    parser = argparse.ArgumentParser(description="Booking lifecycle flow")
    parser.add_argument("--room-id", required=True, help="Catalog room ID")
    parser.add_argument("--tenant-id", required=True, help="UUID of the room's owner")
    parser.add_argument("--guest-id", default=None, help="Guest UUID (random if omitted)")
    parser.add_argument("--check-in", required=True, help="Check-in date (YYYY-MM-DD)")
    parser.add_argument("--check-out", required=True, help="Check-out date (YYYY-MM-DD)")
    parser.add_argument("--guests", type=int, default=2, help="Number of guests")
    parser.add_argument("--proof", required=True, type=Path, help="Transfer receipt (JPG/PNG)")
    parser.add_argument("--complete", action="store_true", help="Also complete the booking")
    args = parser.parse_args()

    guest_token = create_actor_token(uuid.UUID(args.guest_id) if args.guest_id else uuid.uuid4(), ActorRole.GUEST)
    tenant_token = create_actor_token(uuid.UUID(args.tenant_id), ActorRole.TENANT)
    fields = ["id", "status", "total_amount", "currency", "payment_proof", "allowed_actions"]

    # Step 1: Create booking
    print_step(1, "Create booking (guest)")
    booking_result = api_request(guest_token, "POST", "/api/v1/bookings", {
        "room_id": args.room_id,
        "check_in": args.check_in,
        "check_out": args.check_out,
        "guests": args.guests,
    })
    if not print_result(booking_result, fields):
        sys.exit(1)
    booking_id = booking_result["data"]["id"]

    # Step 2: Upload payment proof
    print_step(2, "Upload payment proof (guest)")
    with args.proof.open("rb") as proof_file:
        proof_result = api_request(
            guest_token,
            "POST",
            f"/api/v1/bookings/{booking_id}/payment-proof",
            files={"file": (args.proof.name, proof_file)},
        )
    if not print_result(proof_result, fields):
        sys.exit(1)

    # Step 3: Approve payment
    print_step(3, "Approve payment (tenant)")
    approve_result = api_request(
        tenant_token, "POST", f"/api/v1/tenant/orders/{booking_id}/confirm", {"action": "approve"}
    )
    if not print_result(approve_result, fields):
        sys.exit(1)

    # Step 4: Reminder
    print_step(4, "Send reminder (tenant)")
    reminder_result = api_request(tenant_token, "POST", f"/api/v1/tenant/orders/{booking_id}/reminder")
    if not print_result(reminder_result, fields):
        sys.exit(1)

    if args.complete:
        # Step 5: Complete
        print_step(5, "Complete booking (system)")
        system_token = create_actor_token(None, ActorRole.SYSTEM)
        complete_result = api_request(system_token, "POST", f"/api/v1/internal/bookings/{booking_id}/complete")
        if not print_result(complete_result, fields):
            sys.exit(1)

    history_result = api_request(guest_token, "GET", f"/api/v1/bookings/{booking_id}/history")
    print_result(history_result)

    print("\n" + "="*60)
    print("FLOW COMPLETE")
    print("="*60)


if __name__ == "__main__":
    main()
