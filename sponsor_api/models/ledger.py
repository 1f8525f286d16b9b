from pydantic import BaseModel, Field

from sponsor_api.models.order import OrderStatus, utc_timestamp

# Layout of the public "Sponsorship Requests" sheet (originally a Google Form
# response sheet). Only seeded when the sheet is empty; curated columns such
# as Category, Tier and Notes are never written here.
PUBLIC_HEADERS = [
    "Timestamp", "Email Address", "Sponsor Name", "Sponsor Email",
    "Category", "Tier", "Book Title", "Status", "Date Confirmed", "Sponsorship Type", "Notes",
]

FINALIZE_HEADERS = ("Book Title", "Sponsor Email", "Status", "Date Confirmed")


class LedgerIntake(BaseModel):
    """Pending row mirrored into the public ledger at order creation."""

    timestamp: str = Field(default_factory=utc_timestamp)
    sponsor_name: str = ""
    sponsor_email: str = ""
    book_title: str = ""
    status: str = OrderStatus.PENDING.value
    referral: str = ""
    team_member: str = ""

    def to_record(self) -> dict[str, str]:
        return {
            "Timestamp": self.timestamp,
            "Sponsor Name": self.sponsor_name,
            "Sponsor Email": self.sponsor_email,
            "Book Title": self.book_title,
            "Status": self.status,
            "Referral": self.referral,
            "TeamMember": self.team_member,
        }
