"""Capture LinkedIn session cookies via patchright for authenticated scraping.

Usage:
    .venv/bin/python scripts/extract_cookies.py [output_path]

Opens a Chromium window. Log in to LinkedIn manually, then press Enter
in the terminal. Cookies are saved to config/linkedin_cookies.json unless
another path is given. The li_at value can also be exported as LI_AT_COOKIE.
"""

import json
import sys
from pathlib import Path

from patchright.sync_api import sync_playwright

DEFAULT_OUTPUT_PATH = Path("config/linkedin_cookies.json")
AUTH_COOKIE_NAME = "li_at"


def main() -> None:
    output_path = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_OUTPUT_PATH

    with sync_playwright() as p:
        browser = p.chromium.launch(headless=False)
        context = browser.new_context()
        page = context.new_page()
        page.goto("https://www.linkedin.com/login")

        input("\n>>> Log in to LinkedIn, then press Enter here to save cookies...")

        cookies = context.cookies()
        browser.close()

    if not any(c.get("name") == AUTH_COOKIE_NAME for c in cookies):
        print(f"No {AUTH_COOKIE_NAME} cookie found - login did not complete, nothing saved")
        sys.exit(1)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(cookies, indent=2))
    print(f"Saved {len(cookies)} cookies to {output_path}")


if __name__ == "__main__":
    main()
