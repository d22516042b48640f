#!/usr/bin/env python3
"""
Top up (or create) an account's render credits.
Run from the project root: python -m scripts.grant_credits <owner_id> <amount>
or: PYTHONPATH=. python scripts/grant_credits.py <owner_id> <amount>
"""
import argparse
import os
import sys

# project root on PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from enhancer.db.init_db import init_db
from enhancer.db.session import SessionLocal
from enhancer.services.credits.service import CreditService


def main():
    parser = argparse.ArgumentParser(description="Grant render credits to an account.")
    parser.add_argument("owner_id")
    parser.add_argument("amount", type=int)
    args = parser.parse_args()

    init_db()
    db = SessionLocal()
    try:
        account = CreditService(db).grant(args.owner_id, args.amount)
        db.commit()
        print(f"{account.owner_id}: balance {account.credit_balance}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
