"""Configuration for the branch-visit engine.

All business data centralized here - modify as needed without touching code.
Runtime knobs can be overridden through environment variables (.env supported).
"""
import os
from dotenv import load_dotenv

load_dotenv()

SERVICES = [
    {
        "id": "open_account",
        "label": "Open New Account",
        "description": "Start your financial journey with a new savings or current account.",
        "required_documents": [
            "Identity Proof (Aadhar/Passport)",
            "Address Proof",
            "2 Passport Photos",
            "Initial Deposit",
        ],
        "average_time": 45,
    },
    {
        "id": "kyc_update",
        "label": "KYC & Profile Corrections",
        "description": "Update your Know Your Customer details or fix profile errors.",
        "required_documents": [
            "Identity Proof (Aadhar/Passport)",
            "PAN Card",
            "Latest Electricity Bill",
        ],
        "average_time": 20,
    },
    {
        "id": "account_mod",
        "label": "Account Modifications",
        "description": "Change mobile number, update email, or add a nominee.",
        "required_documents": ["Identity Proof", "Request Letter", "Existing Passbook"],
        "average_time": 30,
    },
    {
        "id": "loans",
        "label": "Complex Loan Applications",
        "description": "Apply for home, car, or personal loans with expert guidance.",
        "required_documents": [
            "Identity Proof",
            "Income Proof (3 months)",
            "Collateral Documents",
            "PAN Card",
        ],
        "average_time": 60,
    },
    {
        "id": "security",
        "label": "Large Transactions & Security",
        "description": "Authorize high-value transfers or report security concerns.",
        "required_documents": [
            "Identity Proof",
            "Special Authorization Form",
            "Transaction Slip",
        ],
        "average_time": 40,
    },
    {
        "id": "business",
        "label": "Business / MSME Banking",
        "description": "Dedicated services for businesses, startups, and entrepreneurs.",
        "required_documents": [
            "Trade License",
            "GST Certificate",
            "Business Address Proof",
            "Identity Proof of Proprietor",
        ],
        "average_time": 50,
    },
    {
        "id": "locker",
        "label": "Locker Services",
        "description": "Rent, access, or manage your secure safe deposit locker.",
        "required_documents": ["Identity Proof", "2 Photos", "Locker Agreement"],
        "average_time": 30,
    },
    {
        "id": "grievance",
        "label": "Grievance & Issue Resolution",
        "description": "Formal complaints or resolving complex banking issues.",
        "required_documents": ["Grievance Form", "Support Evidence", "Identity Proof"],
        "average_time": 25,
    },
    {
        "id": "senior",
        "label": "Senior Citizen / Assisted Banking",
        "description": "Priority services and assistance for our senior customers.",
        "required_documents": ["Identity Proof (showing age)", "Address Proof"],
        "average_time": 30,
    },
]

BRANCHES = [
    {"id": "br-mg-road", "name": "MG Road Main Branch", "city": "Bengaluru"},
    {"id": "br-andheri", "name": "Andheri East Branch", "city": "Mumbai"},
    {"id": "br-cp", "name": "Connaught Place Branch", "city": "New Delhi"},
    {"id": "br-tnagar", "name": "T. Nagar Branch", "city": "Chennai"},
]

# Canonical chronological order; lunch hour (1 PM) is not bookable
TIME_SLOTS = [
    "10:00 AM", "10:30 AM", "11:00 AM", "11:30 AM", "12:00 PM", "12:30 PM",
    "02:00 PM", "02:30 PM", "03:00 PM", "03:30 PM", "04:00 PM", "04:30 PM",
]

BUSINESS_HOURS = {
    "open": "10:00",
    "close": "17:00",
}

# Crowd model
SLOT_CAPACITY = 8
BASELINE_MAX_BOOKINGS = 7
CROWD_SCALE = os.getenv("BANKVISIT_CROWD_SCALE", "four_level")

# Wait-time model
SERVICE_COUNTERS = int(os.getenv("BANKVISIT_COUNTERS", "4"))
SMOOTHING_FACTOR = 0.65
CROWD_MULTIPLIERS = {
    "Low": 0.7,
    "Moderate": 1.0,
    "High": 1.3,
    "Very High": 1.6,
}
MIN_WAIT_MINUTES = 5
MAX_WAIT_MINUTES = 60
HIGH_CONFIDENCE_MAX_AHEAD = 6  # fewer than this many ahead -> "High"

# Lifecycle simulation
DWELL_SECONDS = int(os.getenv("BANKVISIT_DWELL_SECONDS", "10"))
TICK_INTERVAL_SECONDS = 1.0

# Persistence (empty -> in-memory only)
DATA_FILE = os.getenv("BANKVISIT_DATA_FILE", "")

# Advisory text (optional external collaborator)
ADVISORY_MODEL = os.getenv("BANKVISIT_ADVISORY_MODEL", "gpt-4o-mini")
ADVISORY_TIMEOUT_SECONDS = 15
LOG_LEVEL = os.getenv("BANKVISIT_LOG_LEVEL", "INFO")
