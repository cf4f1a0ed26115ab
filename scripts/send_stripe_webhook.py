#!/usr/bin/env python3
from __future__ import annotations

import argparse
import hashlib
import hmac
import json
import time
from typing import Any

import httpx
from httpx import ConnectError


def build_event(booking_id: str, session_id: str, payment_type: str) -> dict[str, Any]:
    now = int(time.time())
    return {
        "id": f"evt_local_{now}",
        "object": "event",
        "type": "checkout.session.completed",
        "created": now,
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "status": "complete",
                "payment_status": "paid",
                "metadata": {"bookingId": booking_id, "paymentType": payment_type},
            }
        },
    }


def sign_body(secret: str, body: bytes) -> str:
    """Stripe-Signature header: t=<unix>,v1=<hex hmac of "<t>.<body>">."""
    timestamp = int(time.time())
    signed = f"{timestamp}.".encode("utf-8") + body
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def main() -> None:
    parser = argparse.ArgumentParser(description="Send a test Stripe checkout webhook POST")
    parser.add_argument("--url", default="http://127.0.0.1:8001/api/webhooks/stripe")
    parser.add_argument("--booking", required=True, help="Booking id stored in the session metadata")
    parser.add_argument("--session", default="cs_test_local")
    parser.add_argument("--type", default="deposit", choices=["deposit", "remaining"])
    parser.add_argument("--webhook-secret", default="", help="Stripe webhook signing secret (whsec_...)")
    args = parser.parse_args()

    payload = build_event(args.booking, args.session, args.type)
    body = json.dumps(payload).encode("utf-8")

    headers = {"Content-Type": "application/json"}
    if args.webhook_secret:
        headers["Stripe-Signature"] = sign_body(args.webhook_secret, body)

    try:
        resp = httpx.post(args.url, content=body, headers=headers, timeout=10.0)
    except ConnectError:
        print("Connection refused. Is the FastAPI server running?")
        print("Try: uvicorn app.main:app --reload --port 8001")
        return

    print(resp.status_code)
    if resp.text:
        print(resp.text)


if __name__ == "__main__":
    main()
