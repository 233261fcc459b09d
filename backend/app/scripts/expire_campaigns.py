"""
Marks campaigns past their end date as COMPLETED
Run: python -m app.scripts.expire_campaigns (e.g. from cron)
"""
from sqlmodel import Session
from app.core.logging import setup_logging
from app.db.session import engine
from app.services.lifecycle import expire_campaigns


def main():
    setup_logging()
    with Session(engine) as session:
        expired = expire_campaigns(session)
    print(f"Expired campaigns: {expired}")


if __name__ == "__main__":
    main()
