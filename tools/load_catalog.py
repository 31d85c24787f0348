import argparse
import json
from pathlib import Path

from sqlalchemy.orm import Session

from coursemap.catalog import load_catalog
from coursemap.config import DATABASE_URL, configure_logging
from coursemap.db import Base, make_engine, transaction


def main() -> None:
    ap = argparse.ArgumentParser(description="Load programs, courses and prerequisites from a catalog JSON file")
    ap.add_argument("catalog", type=Path)
    ap.add_argument("--db-url", type=str, default=DATABASE_URL)
    args = ap.parse_args()

    if not args.catalog.exists():
        raise SystemExit(f"Missing catalog file: {args.catalog}")

    configure_logging()
    payload = json.loads(args.catalog.read_text(encoding="utf-8"))
    engine = make_engine(args.db_url)
    Base.metadata.create_all(engine)
    with Session(engine) as db, transaction(db):
        summary = load_catalog(db, payload)
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
