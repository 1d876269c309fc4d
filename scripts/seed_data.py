import json
from pathlib import Path
import sys


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from drillguard import db
from drillguard.config import load_config
from drillguard.totp import generate_secret

SEED_USERS = [
    ("admin@lgu.gov.ph", "LGU Admin", "LGU_ADMIN", "Adm1n-Drill!"),
    ("trainer@lgu.gov.ph", "Barangay Trainer", "LGU_TRAINER", "Tra1ner-Drill!"),
    ("participant01@example.org", "Participant One", "PARTICIPANT", "password"),
    ("participant02@example.org", "Participant Two", "PARTICIPANT", "Summer2024!"),
    ("participant03@example.org", "Participant Three", "PARTICIPANT", "N2v!e4Gh1@xQz9Lm"),
]

hash_modes_cycle = ["bcrypt", "argon2id"]


def main():
    cfg = load_config()
    db.init_db(cfg.database_path)

    users_out = []
    for idx, (email, name, role, pwd) in enumerate(SEED_USERS):
        if db.get_user(email):
            print("Skipping existing", email)
            continue
        hash_mode = hash_modes_cycle[idx % len(hash_modes_cycle)]
        user = db.create_user(
            email=email,
            name=name,
            password=pwd,
            hash_mode=hash_mode,
            role=role,
            totp_secret=generate_secret() if cfg.enable_totp else None,
        )
        users_out.append(
            {
                "email": email,
                "password": pwd,
                "role": role,
                "hash_mode": hash_mode,
                "totp_secret": user.totp_secret,
            }
        )

    Path("data").mkdir(exist_ok=True)
    with open("data/users.json", "w", encoding="utf-8") as f:
        json.dump(users_out, f, indent=2)
    print("Seeded", len(users_out), "users -> data/users.json and database")


if __name__ == "__main__":
    main()
