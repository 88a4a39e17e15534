"""
Carrier identification from store-provided hints and tracking numbers.

The store's tracking company string is the most reliable signal, so a
recognized hint always wins. Tracking-number patterns are only a fallback
and are checked most specific first: several carriers issue bare 12, 15,
20 and 22 digit numbers.
"""

import re
from urllib.parse import quote

from delayguard.models.shipment import Carrier

TRADEMARK_GLYPHS = re.compile(r"[®™©]")

# Company-name variants as stores report them
CARRIER_NAME_MAP: dict[str, Carrier] = {
    # UPS
    "ups": Carrier.UPS,
    "united parcel service": Carrier.UPS,
    "ups ground": Carrier.UPS,
    "ups next day air": Carrier.UPS,
    "ups 2nd day air": Carrier.UPS,
    "ups surepost": Carrier.UPS,
    "ups mail innovations": Carrier.UPS,
    # FedEx
    "fedex": Carrier.FEDEX,
    "federal express": Carrier.FEDEX,
    "fedex ground": Carrier.FEDEX,
    "fedex express": Carrier.FEDEX,
    "fedex home delivery": Carrier.FEDEX,
    "fedex smartpost": Carrier.FEDEX,
    "fedex 2day": Carrier.FEDEX,
    "fedex overnight": Carrier.FEDEX,
    # USPS
    "usps": Carrier.USPS,
    "usps priority mail": Carrier.USPS,
    "usps priority mail express": Carrier.USPS,
    "usps ground advantage": Carrier.USPS,
    "usps first class": Carrier.USPS,
    "united states postal service": Carrier.USPS,
    "us postal service": Carrier.USPS,
}

# Order matters: distinctive prefixes before bare digit-count fallbacks
TRACKING_NUMBER_PATTERNS: list[tuple[Carrier, re.Pattern[str]]] = [
    (Carrier.UPS, re.compile(r"^1Z[A-Z0-9]{16}$")),  # Standard 1Z
    (Carrier.UPS, re.compile(r"^T[A-Z0-9]{10}$")),  # Mail Innovations
    (Carrier.USPS, re.compile(r"^94\d{20}$")),  # Priority Mail Express
    (Carrier.USPS, re.compile(r"^92\d{20}$")),  # Priority Mail
    (Carrier.USPS, re.compile(r"^93\d{20}$")),  # Certified Mail
    (Carrier.USPS, re.compile(r"^420\d{5,9}\d{16,22}$")),  # ZIP-prefixed IMpb
    (Carrier.USPS, re.compile(r"^[A-Z]{2}\d{9}US$")),  # International
    (Carrier.FEDEX, re.compile(r"^96\d{10,22}$")),  # SmartPost
    (Carrier.FEDEX, re.compile(r"^61\d{18}$")),  # Ground 96
    (Carrier.FEDEX, re.compile(r"^\d{12}$")),  # Express
    (Carrier.FEDEX, re.compile(r"^\d{15}$")),  # Ground
    (Carrier.USPS, re.compile(r"^\d{20}$")),
    (Carrier.FEDEX, re.compile(r"^\d{22}$")),  # Ground/Home Delivery
]

# Service levels embedded in tracking company strings, longest first
COMPANY_SERVICE_LEVELS: dict[str, str] = {
    "ups next day air": "ups_next_day_air",
    "ups 2nd day air": "ups_2nd_day_air",
    "ups mail innovations": "ups_mail_innovations",
    "ups surepost": "ups_surepost",
    "ups ground": "ups_ground",
    "fedex home delivery": "fedex_home_delivery",
    "fedex smartpost": "fedex_smartpost",
    "fedex overnight": "fedex_overnight",
    "fedex express": "fedex_express",
    "fedex ground": "fedex_ground",
    "fedex 2day": "fedex_2day",
    "usps priority mail express": "usps_priority_mail_express",
    "usps ground advantage": "usps_ground_advantage",
    "usps priority mail": "usps_priority_mail",
    "usps first class": "usps_first_class",
}

TRACKING_URL_TEMPLATES: dict[Carrier, str] = {
    Carrier.UPS: "https://www.ups.com/track?tracknum={}",
    Carrier.FEDEX: "https://www.fedex.com/fedextrack/?trknbr={}",
    Carrier.USPS: "https://tools.usps.com/go/TrackConfirmAction?tLabels={}",
}


def _normalize_company(company: str) -> str:
    return TRADEMARK_GLYPHS.sub("", company).lower().strip()


def clean_tracking_number(tracking_number: str) -> str:
    """Strip spaces and hyphens and uppercase."""
    return re.sub(r"[\s-]", "", tracking_number).upper()


def detect_carrier_from_company(company: str | None) -> Carrier:
    """Match a tracking company string against known carrier names."""
    if not company:
        return Carrier.UNKNOWN

    normalized = _normalize_company(company)
    if not normalized:
        return Carrier.UNKNOWN

    if normalized in CARRIER_NAME_MAP:
        return CARRIER_NAME_MAP[normalized]

    for name, carrier in CARRIER_NAME_MAP.items():
        if name in normalized or normalized in name:
            return carrier

    return Carrier.UNKNOWN


def detect_carrier_from_tracking_number(tracking_number: str | None) -> Carrier:
    """Infer the carrier from the tracking number format."""
    if not tracking_number:
        return Carrier.UNKNOWN

    cleaned = clean_tracking_number(tracking_number)
    for carrier, pattern in TRACKING_NUMBER_PATTERNS:
        if pattern.match(cleaned):
            return carrier

    return Carrier.UNKNOWN


def identify_carrier(company: str | None, tracking_number: str | None) -> Carrier:
    """
    Identify the carrier of a shipment.

    Args:
        company: Tracking company reported by the store (may be None)
        tracking_number: Tracking number (may be None)

    Returns:
        Carrier, or Carrier.UNKNOWN when neither signal is recognized
    """
    from_company = detect_carrier_from_company(company)
    if from_company != Carrier.UNKNOWN:
        return from_company

    return detect_carrier_from_tracking_number(tracking_number)


def normalize_service_level(service_level: str | None, carrier: Carrier) -> str | None:
    """
    Normalize a service level to a delivery-window key.

    Examples:
        ("UPS® Ground", UPS) -> "ups_ground"
        ("Home Delivery", FEDEX) -> "fedex_home_delivery"
    """
    if not service_level:
        return None

    normalized = TRADEMARK_GLYPHS.sub("", service_level.lower())
    normalized = re.sub(r"[^\w\s]", " ", normalized)
    normalized = re.sub(r"\s+", " ", normalized).strip()
    if not normalized:
        return None

    prefix = carrier.value
    if carrier != Carrier.UNKNOWN and not normalized.startswith(prefix):
        normalized = f"{prefix} {normalized}"

    return normalized.replace(" ", "_")


def extract_service_level(company: str | None) -> str | None:
    """Extract a service level key from strings like 'FedEx 2Day'."""
    if not company:
        return None

    normalized = _normalize_company(company)
    for pattern, service_level in COMPANY_SERVICE_LEVELS.items():
        if pattern in normalized:
            return service_level

    return None


def is_valid_tracking_number(tracking_number: str | None) -> bool:
    """Plausibility check: alphanumeric, 10 to 34 characters."""
    if not tracking_number:
        return False

    cleaned = clean_tracking_number(tracking_number)
    return cleaned.isascii() and cleaned.isalnum() and 10 <= len(cleaned) <= 34


def build_tracking_url(carrier: Carrier, tracking_number: str) -> str | None:
    """Customer-facing tracking page, or None for unknown carriers."""
    template = TRACKING_URL_TEMPLATES.get(carrier)
    if template is None:
        return None
    return template.format(quote(tracking_number, safe=""))
