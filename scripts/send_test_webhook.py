#!/usr/bin/env python3
"""Send sample trigger events to a running AutoRule API.

Used for end-to-end checks of the inbound webhook path.
"""

import argparse
import asyncio
import json
from uuid import uuid4

import httpx

SAMPLE_EVENTS = {
    "gmail": {
        "metadata": {
            "trigger_slug": "GMAIL_NEW_GMAIL_MESSAGE",
            "trigger_id": "ti_demo",
        },
        "data": {
            "subject": "Invoice #1042 from ACME",
            "sender": "billing@acme.example",
            "message_text": "Please find attached invoice #1042, due in 14 days.",
        },
    },
    "slack": {
        "metadata": {
            "trigger_slug": "SLACK_NEW_MESSAGE",
        },
        "data": {
            "channel": "C0DEMO",
            "user": "U0DEMO",
            "text": "Deploy of api-gateway failed on prod",
        },
    },
}


def build_envelope(kind: str, user_id: str) -> dict:
    """Wrap a sample event in the current wire format with fresh ids."""
    event = json.loads(json.dumps(SAMPLE_EVENTS[kind]))
    event["id"] = f"evt_{uuid4().hex[:12]}"
    event["metadata"]["user_id"] = user_id
    event["metadata"]["log_id"] = f"log_{uuid4().hex[:12]}"
    if kind == "gmail":
        event["data"]["message_id"] = f"msg_{uuid4().hex[:8]}"
    return event


async def send(base_url: str, kind: str, user_id: str, count: int, secret: str | None) -> None:
    headers = {"x-webhook-secret": secret} if secret else {}
    async with httpx.AsyncClient(base_url=base_url, timeout=10.0) as client:
        for _ in range(count):
            envelope = build_envelope(kind, user_id)
            response = await client.post("/api/v1/triggers/webhook", json=envelope, headers=headers)
            print(f"{envelope['id']} -> {response.status_code} {response.text}")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--url", default="http://localhost:8000")
    parser.add_argument("--kind", choices=sorted(SAMPLE_EVENTS), default="gmail")
    parser.add_argument("--user-id", default="demo-user")
    parser.add_argument("--count", type=int, default=1)
    parser.add_argument("--secret", default=None, help="Value for x-webhook-secret")
    args = parser.parse_args()

    asyncio.run(send(args.url, args.kind, args.user_id, args.count, args.secret))


if __name__ == "__main__":
    main()
