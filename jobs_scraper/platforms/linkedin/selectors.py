"""LinkedIn DOM selector constants for the authenticated job search view.

Where LinkedIn renders the same field under several class names, the
constant is a tuple and callers try each in order.
"""

# --- Result list ---
CONTAINER: str = ".jobs-search-results-list"
JOBS: str = "div.job-card-container"
JOB_ID_ATTR: str = "data-job-id"

# --- Card fields ---
LINK: str = "a.job-card-container__link"
TITLE: str = ".artdeco-entity-lockup__title"
COMPANY: tuple[str, ...] = (
    ".job-card-container__company-name",
    ".job-card-container__primary-description",
)
PLACE: str = ".artdeco-entity-lockup__caption"
DATE: str = "time"
FOOTER: str = ".job-card-list__footer-wrapper"

# --- Detail panel ---
DETAILS_PANEL: str = ".jobs-search__job-details--container"
DESCRIPTION: str = ".jobs-description"
DATE_AGO: str = ".jobs-unified-top-card__posted-date"
INSIGHTS: str = "[class=jobs-unified-top-card__job-insight]"  # exact class only
APPLY_BUTTON: str = 'button.jobs-apply-button[role="link"]'

# --- Overlays ---
CHAT_PANEL: str = ".msg-overlay-list-bubble"
PRIVACY_ACCEPT_BUTTON: str = "button.artdeco-global-alert__action"
