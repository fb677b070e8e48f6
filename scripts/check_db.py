"""
Print CRM record counts per funnel stage and ticket status.

Requires DATABASE_URL.
"""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

import db
from models.enums import FunnelType
from services.kpi_service import stage_breakdown

for funnel_type in FunnelType:
    records = db.get_funnel_records(funnel_type)
    print(f"{funnel_type.value}: {len(records)} records")
    for row in stage_breakdown(records, funnel_type):
        print(f"  {row['label']:<14} {row['count']}")

tickets = db.get_tickets()
print(f"TICKETS: {len(tickets)}")
for status in sorted({t.status.value for t in tickets}):
    print(f"  {status:<14} {sum(1 for t in tickets if t.status.value == status)}")
