#!/usr/bin/env python3
"""
fetch_timetables.py
===================
Download ODPT ``odpt:StationTimetable`` data for the operators used by
``last_train.py``.

JR East is served from the challenge endpoint, Keikyu from the regular one;
both need a consumer key (``ODPT_CONSUMER_KEY`` or ``--key``).
"""
from __future__ import annotations

import argparse
import json
import os
import sys
import time
from pathlib import Path
from typing import Dict, List

import requests

TIMEOUT = 60        # seconds per request
RETRIES = 3
BACKOFF = 0.5       # seconds, multiplied by the attempt number

ENDPOINTS: Dict[str, Dict[str, str]] = {
    "JREast": {
        "url": "https://api-challenge.odpt.org/api/v4/odpt:StationTimetable",
        "operator": "odpt.Operator:JR-East",
        "outfile": "train-timetables/odpt_StationTimetable-jreast-combined.json",
    },
    "Keikyu": {
        "url": "https://api.odpt.org/api/v4/odpt:StationTimetable",
        "operator": "odpt.Operator:Keikyu",
        "outfile": "train-timetables/odpt_StationTimetable-keikyu.json",
    },
}


def get_json(url: str, params: Dict[str, str], *, tries: int = RETRIES, session: requests.Session | None = None) -> list:
    """GET *url* as JSON, retrying with linear back-off; re-raises the last error."""
    if tries < 1:
        raise ValueError(f"tries must be >= 1, got {tries}")
    http = session or requests
    last_err: Exception | None = None
    for attempt in range(1, tries + 1):
        try:
            resp = http.get(url, params=params, headers={"Accept": "application/json"}, timeout=TIMEOUT)
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            last_err = e
            print(f"⚠️  attempt {attempt}/{tries} failed: {e}", file=sys.stderr)
            if attempt < tries:
                time.sleep(BACKOFF * attempt)
    raise last_err


def fetch_operator(name: str, key: str, *, session: requests.Session | None = None) -> list:
    ep = ENDPOINTS[name]
    params = {"odpt:operator": ep["operator"], "acl:consumerKey": key}
    return get_json(ep["url"], params, session=session)


def main(argv: List[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Fetch ODPT station timetables.")
    p.add_argument("-k", "--key", default=os.environ.get("ODPT_CONSUMER_KEY"), help="ODPT consumer key")
    p.add_argument("operators", nargs="*", default=list(ENDPOINTS), help=f"subset of {', '.join(ENDPOINTS)}")
    args = p.parse_args(argv)

    if not args.key:
        raise SystemExit("❌ no consumer key: set ODPT_CONSUMER_KEY or pass --key")
    unknown = [o for o in args.operators if o not in ENDPOINTS]
    if unknown:
        raise SystemExit(f"❌ unknown operator(s): {', '.join(unknown)}")

    failed = []
    with requests.Session() as session:
        for name in args.operators:
            print(f"▶️  {name} …")
            try:
                data = fetch_operator(name, args.key, session=session)
            except (requests.RequestException, ValueError) as e:
                print(f"⚠️  {name}: giving up ({e})", file=sys.stderr)
                failed.append(name)
                continue
            out = Path(ENDPOINTS[name]["outfile"])
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            print(f"  ✓ {len(data)} timetables -> {out}")

    if failed:
        raise SystemExit(f"❌ failed: {', '.join(failed)}")
    print("✅ done")


if __name__ == "__main__":
    main()
