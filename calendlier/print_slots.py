"""Print the bookable slots of an event type for one date.

Usage:
    python -m calendlier.print_slots EVENT_ID YYYY-MM-DD [TIMEZONE]
"""
import sys
from datetime import date

from fastapi import HTTPException

from calendlier.database import SessionLocal
from calendlier.routes.booking_routes import list_available_slots


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) not in (2, 3):
        print(__doc__.strip(), file=sys.stderr)
        return 2

    try:
        event_id = int(args[0])
        slot_date = date.fromisoformat(args[1])
    except ValueError as exc:
        print(f"Invalid argument: {exc}", file=sys.stderr)
        return 2
    tz_name = args[2] if len(args) == 3 else "UTC"

    db = SessionLocal()
    try:
        result = list_available_slots(event_id, slot_date=slot_date, tz_name=tz_name, db=db)
    except HTTPException as exc:
        print(f"Error: {exc.detail}", file=sys.stderr)
        return 1
    finally:
        db.close()

    for slot in result.slots:
        print(slot)
    return 0


if __name__ == "__main__":
    sys.exit(main())
