"""
Test data seeder: populates the database with sample data for development.

Usage:
    python scripts/seed_data.py

Creates, for one demo tenant with two branches:
  - 4 outgoing remittances (debts in IRR, paid for in CAD)
  - 5 incoming remittances at different payout rates
  - one auto-settlement per strategy so every status appears

Not idempotent: each run creates a fresh demo tenant and prints its id.
"""

import asyncio
import uuid
from decimal import Decimal

from hawala.settlement_engine.engine import settlement_engine
from hawala.settlement_engine.strategy import SettlementStrategy

TENANT_ID = uuid.uuid4()
ACTOR_ID = uuid.uuid4()
TORONTO_BRANCH = uuid.uuid4()
VANCOUVER_BRANCH = uuid.uuid4()

# ---------------------------------------------------------------------------
# Outgoing debts (acquisition rate = IRR per CAD)
# ---------------------------------------------------------------------------

SAMPLE_OUTGOING: list[dict] = [
    {
        "branch_id": TORONTO_BRANCH,
        "sender_name": "Reza Karimi",
        "recipient_name": "Maryam Karimi",
        "recipient_bank": "Bank Melli",
        "recipient_iban": "IR820540102680020817909002",
        "amount": Decimal("1000000"),
        "acquisition_rate": Decimal("85000"),
        "fee_amount": Decimal("5.00"),
    },
    {
        "branch_id": TORONTO_BRANCH,
        "sender_name": "Shirin Ahmadi",
        "recipient_name": "Ali Ahmadi",
        "amount": Decimal("2500000"),
        "acquisition_rate": Decimal("84500"),
    },
    {
        "branch_id": VANCOUVER_BRANCH,
        "sender_name": "Dariush Farahani",
        "recipient_name": "Nasrin Farahani",
        "amount": Decimal("600000"),
        "acquisition_rate": Decimal("85500"),
        "fee_amount": Decimal("2.50"),
    },
    {
        "branch_id": VANCOUVER_BRANCH,
        "sender_name": "Leila Moradi",
        "recipient_name": "Hossein Moradi",
        "amount": Decimal("300000"),
        "acquisition_rate": Decimal("85200"),
    },
]

# ---------------------------------------------------------------------------
# Incoming funds (payout rate = IRR per CAD)
# ---------------------------------------------------------------------------

SAMPLE_INCOMING: list[dict] = [
    {"branch_id": TORONTO_BRANCH, "sender_name": "Omid Rahimi", "recipient_name": "Sara Rahimi",
     "amount": Decimal("400000"), "payout_rate": Decimal("84000")},
    {"branch_id": TORONTO_BRANCH, "sender_name": "Babak Azizi", "recipient_name": "Neda Azizi",
     "amount": Decimal("700000"), "payout_rate": Decimal("86000")},
    {"branch_id": VANCOUVER_BRANCH, "sender_name": "Kaveh Jafari", "recipient_name": "Mina Jafari",
     "amount": Decimal("1200000"), "payout_rate": Decimal("85800")},
    {"branch_id": VANCOUVER_BRANCH, "sender_name": "Parisa Hosseini", "recipient_name": "Arash Hosseini",
     "amount": Decimal("250000"), "payout_rate": Decimal("85100")},
    {"branch_id": TORONTO_BRANCH, "sender_name": "Farid Tehrani", "recipient_name": "Yasmin Tehrani",
     "amount": Decimal("900000"), "payout_rate": Decimal("85900")},
]


async def seed():
    print(f"Seeding demo tenant {TENANT_ID}")

    outgoing = []
    for data in SAMPLE_OUTGOING:
        record = await settlement_engine.create_outgoing(TENANT_ID, ACTOR_ID, **data)
        outgoing.append(record)
        print(f"  + {record.code} {record.amount} IRR @ {record.acquisition_rate}")

    for data in SAMPLE_INCOMING:
        record = await settlement_engine.create_incoming(TENANT_ID, ACTOR_ID, **data)
        print(f"  + {record.code} {record.amount} IRR @ {record.payout_rate}")

    for record, strategy in zip(
        outgoing[:3],
        (SettlementStrategy.BEST_RATE, SettlementStrategy.FIFO, SettlementStrategy.LIFO),
    ):
        result = await settlement_engine.auto_settle(TENANT_ID, record.id, ACTOR_ID, strategy)
        print(
            f"  ~ {record.code} {strategy.value}: {result.outcome.value}, "
            f"settled {result.total_settled}, profit {result.total_profit}"
        )

    print("Done.")


if __name__ == "__main__":
    asyncio.run(seed())
