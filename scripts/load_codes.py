"""Append pre-generated codes to a pool sub-range.

    python scripts/load_codes.py --pool Game1 --sub-range A:B codes.txt

One code per line; for CSV exports only the first column is used.
"""

import argparse
import csv
import logging

from common import db as common_db

from fulfillment_service import config
from fulfillment_service.allocator import CodePoolStore

logger = logging.getLogger("load_codes")


def read_codes(path: str) -> list[str]:
    codes = []
    with open(path, "r", encoding="utf-8", newline="") as handle:
        for row in csv.reader(handle):
            if row and row[0].strip():
                codes.append(row[0].strip())
    return codes


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("path")
    parser.add_argument("--pool", required=True)
    parser.add_argument("--sub-range", required=True)
    parser.add_argument("--db-path", default=None)
    args = parser.parse_args()

    logging.basicConfig(level=config.LOG_LEVEL)
    common_db.init_db(args.db_path)

    codes = read_codes(args.path)
    if not codes:
        logger.warning("No codes found in %s", args.path)
        return

    store = CodePoolStore(db_path=args.db_path, timeout=config.DB_TIMEOUT_S)
    store.append_codes(args.pool, args.sub_range, codes)
    stats = store.stats(args.pool, args.sub_range)
    print(f"{args.pool}!{args.sub_range} total={stats.total} claimed={stats.claimed} available={stats.available}")


if __name__ == "__main__":
    main()
