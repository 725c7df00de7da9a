"""
civica.constants — Shared Constants & Helpers
===============================================

Single source of truth for the level ladder, persona presets, severity
ordering, AI fallback values and locale strings.  Import from here
instead of duplicating in services, stores and routes.
"""

from __future__ import annotations

from dataclasses import dataclass

from civica.database.models import Level, Persona, Severity

# ---------------------------------------------------------------------------
# Level ladder — points needed to leave each tier
# ---------------------------------------------------------------------------
LEVEL_THRESHOLDS: dict[Level, int] = {
    Level.BRONZE: 100,
    Level.SILVER: 200,
    Level.GOLD: 350,
    Level.DIAMOND: 500,
}

NEXT_LEVEL: dict[Level, Level | None] = {
    Level.BRONZE: Level.SILVER,
    Level.SILVER: Level.GOLD,
    Level.GOLD: Level.DIAMOND,
    Level.DIAMOND: None,  # terminal
}

LEVEL_LABELS: dict[Level, str] = {
    Level.BRONZE: "Bronze",
    Level.SILVER: "Silver",
    Level.GOLD: "Gold",
    Level.DIAMOND: "Diamond",
}

# 5 upvotes = 2 points
POINTS_PER_UPVOTE = 0.4


def threshold(level: Level | str) -> int:
    """Points required to leave *level*."""
    return LEVEL_THRESHOLDS[Level(level)]


def default_stats() -> dict:
    return {
        "total_reports": 0,
        "total_upvotes": 0,
        "resolved_issues": 0,
        "points": 0,
        "level": Level.BRONZE.value,
    }


def default_preferences() -> dict:
    return {
        "nearby_radius": 10,
        "notifications": {
            "reports": True,
            "news": True,
            "promotions": True,
            "comments": True,
            "upvotes": True,
        },
        "dark_mode": False,
    }


def default_engagement() -> dict:
    return {"upvotes": 0, "comments": 0, "shares": 0, "watchers": 0, "views": 0}


DEFAULT_BADGES: list[str] = ["newcomer"]


# ---------------------------------------------------------------------------
# Personas
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class PersonaInfo:
    id: Persona
    name: str
    description: str
    default_interests: tuple[str, ...]
    default_preferences: tuple[str, ...]


PERSONAS: dict[Persona, PersonaInfo] = {
    Persona.MERCHANT: PersonaInfo(
        id=Persona.MERCHANT,
        name="Merchant / UMKM",
        description="Pemilik usaha kecil menengah yang ingin mempromosikan produk "
                    "dan terhubung dengan pelanggan lokal",
        default_interests=("bisnis", "marketing", "pelanggan", "promo", "delivery"),
        default_preferences=(
            "Promosi bisnis sekitar",
            "Tren pasar lokal",
            "Event bazaar dan pameran",
            "Tips UMKM",
            "Peluang kolaborasi",
        ),
    ),
    Persona.OFFICE_WORKER: PersonaInfo(
        id=Persona.OFFICE_WORKER,
        name="Office Worker",
        description="Pekerja kantoran yang butuh info tempat makan, transportasi, "
                    "dan fasilitas sekitar kantor",
        default_interests=("makan siang", "kopi", "coworking", "transportasi", "meeting"),
        default_preferences=(
            "Rekomendasi tempat makan",
            "Info lalu lintas",
            "Promo kantin dan kafe",
            "Coworking space",
            "Event networking",
        ),
    ),
    Persona.RESIDENT: PersonaInfo(
        id=Persona.RESIDENT,
        name="Resident",
        description="Warga yang peduli dengan kondisi lingkungan sekitar dan ingin "
                    "berkontribusi untuk perbaikan",
        default_interests=("lingkungan", "keamanan", "fasilitas umum", "komunitas", "RT/RW"),
        default_preferences=(
            "Laporan infrastruktur",
            "Keamanan lingkungan",
            "Info RT/RW",
            "Acara komunitas",
            "Layanan publik",
        ),
    ),
    Persona.STUDENT: PersonaInfo(
        id=Persona.STUDENT,
        name="Student",
        description="Pelajar atau mahasiswa yang mencari tempat belajar, hangout, "
                    "dan diskon khusus",
        default_interests=("belajar", "nongkrong", "diskon", "wifi", "kost"),
        default_preferences=(
            "Tempat belajar nyaman",
            "Promo untuk mahasiswa",
            "Cafe dengan WiFi",
            "Info kost dan kontrakan",
            "Event kampus",
        ),
    ),
}


# ---------------------------------------------------------------------------
# Severity ordering (most urgent first) and pulse scoring
# ---------------------------------------------------------------------------
SEVERITY_ORDER: list[Severity] = [
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
]

URGENT_SEVERITIES: frozenset[Severity] = frozenset(
    {Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM}
)

CONTRIBUTOR_REPORT_WEIGHT = 10
CONTRIBUTOR_UPVOTE_WEIGHT = 2

# Result caps for the dashboard queries
URGENT_QUERY_LIMIT = 100
CONTRIBUTOR_QUERY_LIMIT = 200
LIVE_QUERY_LIMIT = 50
PULSE_TOP_N = 5

WEEKDAY_SHORT: dict[str, list[str]] = {
    # Monday-first, matching datetime.weekday()
    "id": ["Sen", "Sel", "Rab", "Kam", "Jum", "Sab", "Min"],
    "en": ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"],
}


# ---------------------------------------------------------------------------
# Badge requirements (badge id → predicate over stats)
# ---------------------------------------------------------------------------
def badge_status(stats: dict) -> dict[str, bool]:
    """Which profile badges a user has unlocked, keyed by badge id."""
    return {
        "1": stats.get("total_reports", 0) >= 1,
        "2": stats.get("total_reports", 0) >= 5,
        "3": stats.get("resolved_issues", 0) >= 1,
        "4": stats.get("total_upvotes", 0) >= 10,
        "5": stats.get("points", 0) >= 1000,
        "6": False,  # 7-day streak is not tracked yet
    }


# ---------------------------------------------------------------------------
# AI fallbacks
# ---------------------------------------------------------------------------
CHAT_FALLBACK = "Maaf, terjadi kesalahan. Silakan coba lagi."
ANONYMOUS_NAME = "Anonymous"
SOMEONE_NAME = "Seseorang"


# ---------------------------------------------------------------------------
# Locale strings for known auth error codes
# ---------------------------------------------------------------------------
AUTH_ERROR_MESSAGES: dict[str, dict[str, str]] = {
    "wrong-password": {
        "id": "Kata sandi saat ini salah",
        "en": "Current password is incorrect",
    },
    "invalid-email": {
        "id": "Format email tidak valid",
        "en": "Invalid email format",
    },
    "user-not-found": {
        "id": "Email tidak terdaftar",
        "en": "No account found with this email",
    },
    "too-many-requests": {
        "id": "Terlalu banyak percobaan. Coba lagi nanti",
        "en": "Too many attempts. Please try again later",
    },
}

GENERIC_ERROR_MESSAGE: dict[str, str] = {
    "id": "Terjadi kesalahan. Silakan coba lagi.",
    "en": "Something went wrong. Please try again.",
}
