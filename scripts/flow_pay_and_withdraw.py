#!/usr/bin/env python3
"""
End-to-end settlement flow against a running API.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_pay_and_withdraw.py --host-id <UUID>
    python scripts/flow_pay_and_withdraw.py --host-id <UUID> --price 300.00 --amount 100.00

Flow:
    1. Deliver a signed checkout.session.completed webhook
    2. Read the host balance
    3. Register a bank account (as host)
    4. Validate the account (as admin)
    5. Request a partial withdrawal
    6. Approve the withdrawal
    7. Mark it paid
"""

import argparse
import hashlib
import hmac
import json
import sys
import time
import uuid
from datetime import date, timedelta

import httpx

from app.config import settings
from app.core.security import create_access_token

BASE_URL = "http://localhost:8000"
IBAN = "DE89370400440532013000"


def token_for(user_id: str, role: str) -> str:
    """Mint an access token signed with the server's JWT secret."""
    return create_access_token({"sub": user_id, "role": role})


def api_request(token: str, method: str, endpoint: str, data: dict | None = None) -> dict:
    """Make authenticated API request."""
    headers = {"Authorization": f"Bearer {token}"}
    url = f"{BASE_URL}{endpoint}"

    if method == "GET":
        response = httpx.get(url, headers=headers, timeout=10.0)
    elif method == "POST":
        response = httpx.post(url, headers=headers, json=data or {}, timeout=10.0)
    else:
        raise ValueError(f"Unknown method: {method}")

    return {"status": response.status_code, "data": response.json() if response.text else {}}


def send_webhook(event: dict) -> dict:
    """POST an event signed the way the payment provider signs it."""
    body = json.dumps(event).encode()
    if not settings.stripe_webhook_secret:
        print("ERROR: STRIPE_WEBHOOK_SECRET is not set")
        sys.exit(1)
    timestamp = int(time.time())
    secret = settings.stripe_webhook_secret.encode()
    signature = hmac.new(secret, f"{timestamp}.".encode() + body, hashlib.sha256).hexdigest()

    response = httpx.post(
        f"{BASE_URL}/webhooks/payments",
        content=body,
        headers={"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"},
        timeout=10.0,
    )
    return {"status": response.status_code, "data": response.json() if response.text else {}}


def checkout_event(host_id: str, price: str) -> dict:
    ref = f"pi_flow_{uuid.uuid4().hex[:12]}"
    arriving = date.today() + timedelta(days=14)
    return {
        "id": f"evt_{uuid.uuid4().hex}",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": f"cs_{ref}",
                "object": "checkout.session",
                "status": "complete",
                "payment_intent": ref,
                "currency": "eur",
                "customer_details": {"email": "guest@example.com"},
                "metadata": {
                    "productId": str(uuid.uuid4()),
                    "userId": str(uuid.uuid4()),
                    "hostId": host_id,
                    "arrivingDate": arriving.isoformat(),
                    "leavingDate": (arriving + timedelta(days=3)).isoformat(),
                    "peopleNumber": "2",
                    "price": price,
                    "commissionRate": "10",
                    "userEmail": "guest@example.com",
                },
            }
        },
    }


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
    parser = argparse.ArgumentParser(description="Payment webhook to paid withdrawal flow")
    parser.add_argument("--host-id", default=str(uuid.uuid4()), help="Host UUID")
    parser.add_argument("--price", default="200.00", help="Booking price")
    parser.add_argument("--amount", default=None, help="Withdrawal amount (defaults to half the balance)")
    args = parser.parse_args()

    host_token = token_for(args.host_id, "host")
    admin_token = token_for(str(uuid.uuid4()), "admin")

    # Step 1: Payment webhook
    print_step(1, "Deliver checkout.session.completed")
    if not print_result(send_webhook(checkout_event(args.host_id, args.price))):
        sys.exit(1)

    # Step 2: Balance
    print_step(2, "Read host balance")
    balance = api_request(host_token, "GET", "/api/v1/withdrawals/balance")
    if not print_result(balance, ["total_earned", "available_balance", "partial_amount"]):
        sys.exit(1)

    # Step 3: Payment account
    print_step(3, "Register bank account (as host)")
    account = api_request(host_token, "POST", "/api/v1/payment-accounts", {
        "details": {"method": "BANK_TRANSFER", "account_holder_name": "Flow Host", "iban": IBAN},
    })
    if not print_result(account, ["id", "method", "destination", "is_default", "is_validated"]):
        sys.exit(1)
    account_id = account["data"]["id"]

    # Step 4: Validation
    print_step(4, "Validate account (as admin)")
    validated = api_request(admin_token, "POST", f"/api/v1/admin/payment-accounts/{account_id}/validate")
    if not print_result(validated, ["id", "is_validated", "validated_at"]):
        sys.exit(1)

    # Step 5: Withdrawal
    print_step(5, "Request partial withdrawal")
    payload = {"withdrawal_type": "PARTIAL_HALF", "payment_account_id": account_id}
    if args.amount:
        payload["amount"] = args.amount
    withdrawal = api_request(host_token, "POST", "/api/v1/withdrawals", payload)
    if not print_result(withdrawal, ["id", "amount", "available_balance_snapshot", "status"]):
        sys.exit(1)
    request_id = withdrawal["data"]["id"]

    # Step 6: Approve
    print_step(6, "Approve withdrawal (as admin)")
    approved = api_request(admin_token, "POST", f"/api/v1/admin/withdrawals/{request_id}/approve", {"note": "flow script"})
    if not print_result(approved, ["id", "status", "processed_at"]):
        sys.exit(1)

    # Step 7: Mark paid
    print_step(7, "Mark withdrawal paid (as admin)")
    paid = api_request(admin_token, "POST", f"/api/v1/admin/withdrawals/{request_id}/mark-paid")
    if not print_result(paid, ["id", "status", "paid_at"]):
        sys.exit(1)

    final = api_request(host_token, "GET", "/api/v1/withdrawals/balance")["data"]
    print("\n" + "="*60)
    print("FULL FLOW COMPLETE")
    print("="*60)
    print(f"Host:           {args.host_id}")
    print(f"Total earned:   {final.get('total_earned')}")
    print(f"Withdrawn:      {final.get('total_withdrawn')}")
    print(f"Available:      {final.get('available_balance')}")


if __name__ == "__main__":
    main()
