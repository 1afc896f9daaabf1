"""Closed value sets shared by models, schemas and services"""

VENUES = {"church", "meaney_hall_gym", "library", "room_102_103", "other"}

EVENT_TYPES = {
    "funeral",
    "mass_additional",
    "concert",
    "retreat",
    "christlife",
    "maintenance",
    "emergency",
    "other",
}

ESTIMATE_TYPES = {"range", "fixed", "not_to_exceed"}

WORK_ORDER_STATUSES = [
    "draft",
    "pending_approval",
    "approved",
    "in_progress",
    "completed",
    "invoiced",
    "paid",
]

CHANGE_ORDER_REASONS = {
    "unexpected_technical_issue",
    "recovery_editing_complexity",
    "added_deliverables",
    "client_request",
    "other",
}

TIME_LOG_CATEGORIES = {"on_site", "remote", "post_production", "admin"}

POST_PRODUCTION_TYPES = {
    "video_editing",
    "audio_editing",
    "audio_denoising",
    "color_grading",
    "graphics_overlay",
    "other",
}

INCIDENT_TYPES = {"camera", "internet", "platform", "audio", "other"}

ROOT_CAUSES = {
    "parish_equipment",
    "isp_network",
    "platform_provider",
    "contractor_error",
    "unknown",
}

INCIDENT_OUTCOMES = {
    "livestream_partial",
    "livestream_unavailable_recording_delivered",
    "neither_available",
}

INVOICE_STATUSES = {"draft", "sent", "paid", "past_due"}

DISCOUNT_TYPES = {"flat", "percentage"}

PAYMENT_STATUSES = {"pending", "succeeded", "failed"}

REMINDER_DAYS = {3, 7, 10}
