import argparse
import os

from lexdesk.client import ApiError, LexdeskClient


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--base-url", default=os.getenv("LEXDESK_BASE_URL", "http://localhost:8000"))
    p.add_argument("--user", default="lockout.demo")
    p.add_argument("--email", default="lockout.demo@example.com")
    p.add_argument("--password", default="Corr3ct!Horse")
    p.add_argument("--attempts", type=int, default=6)
    args = p.parse_args()

    with LexdeskClient(args.base_url) as api:
        try:
            api.register(args.user, args.email, args.password)
            print("registered", args.user)
        except ApiError as e:
            if e.status_code != 409:
                raise
            print("user exists", args.user)

        for i in range(1, args.attempts + 1):
            try:
                api.login(args.user, "wrong-password")
                print("attempt", i, "unexpectedly succeeded")
            except ApiError as e:
                print("attempt", i, e.status_code, e.detail)

        # correct password is refused while the lockout is in force
        try:
            api.login(args.user, args.password)
            print("correct password accepted")
        except ApiError as e:
            print("correct password", e.status_code, e.detail)


if __name__ == "__main__":
    main()
