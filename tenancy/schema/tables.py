"""Tenant-scoped tables, grouped by the revision that scopes them."""

CORE_TABLES = (
    "departments",
    "services",
    "appointments",
    "refresh_tokens",
    "medical_records",
    "bills",
    "availability_slots",
    "referrals",
    "reports",
    "emergency_requests",
    "callback_requests",
    "plans",
    "policies",
    "claims",
    "appointment_history",
    "medicines",
    "prescriptions",
    "prescription_items",
    "medicine_transactions",
    "lab_tests",
    "lab_orders",
    "lab_order_items",
    "lab_samples",
    "lab_results",
    "consultation_notes",
    "wards",
    "rooms",
    "beds",
    "admissions",
    "nursing_notes",
    "vital_signs",
    "medication_administrations",
    "doctor_notes",
    "discharge_summaries",
)

# Only tables not already scoped by the core step, so reverting this step
# never removes a column the core step owns.
REMAINING_TABLES = (
    "allergies",
    "diagnosis",
    "vital_sign",
    "medication_administration",
    "stock_movements",
    "stock_alerts",
    "messages",
    "notifications",
    "reminders",
    "feedback",
    "health_articles",
    "suppliers",
    "purchase_orders",
    "triage",
    "telemedicine_sessions",
)

USERS_TABLE = "users"
