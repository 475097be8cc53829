import argparse
import os
from datetime import datetime, timedelta, timezone

from lexdesk.client import ApiError, LexdeskClient


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--base-url", default=os.getenv("LEXDESK_BASE_URL", "http://localhost:8000"))
    p.add_argument("--user", default="intake.demo")
    p.add_argument("--email", default="intake.demo@example.com")
    p.add_argument("--password", default="Intake!2024x")
    p.add_argument("--assignee", default="asmith")
    args = p.parse_args()

    with LexdeskClient(args.base_url) as api:
        try:
            api.register(args.user, args.email, args.password, first_name="Intake", last_name="Demo")
        except ApiError as e:
            if e.status_code != 409:
                raise
            api.login(args.user, args.password)

        client = api.resource("clients").create(
            {"name": "Harbor Freight Logistics", "email": "legal@harbor.example.com", "client_type": "Business"}
        )
        print("client", client["id"])

        due = datetime.now(timezone.utc) + timedelta(days=45)
        case = api.resource("cases").create(
            {
                "title": "Harbor Freight v. Coastal Storage",
                "client_name": client["name"],
                "client_id": client["id"],
                "matter_type": "Litigation",
                "practice_area": "Commercial",
                "priority": "High",
                "tags": ["contract", "breach"],
                "due_date": due.isoformat(),
            }
        )
        print("case", case["case_number"])

        assigned = api.assign_case(case["id"], args.assignee, reason="intake review complete")
        print("assigned to", assigned["assigned_to"])

        api.add_note(case["id"], "Client provided the storage agreement and invoices for Q1.", title="Intake")
        detail = api.resource("cases").get(case["id"])
        for ev in detail["timeline"]:
            print(ev["event_type"], "|", ev["title"], "|", ev.get("description"))


if __name__ == "__main__":
    main()
