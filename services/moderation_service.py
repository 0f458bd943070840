# FILE: services/moderation_service.py
import re
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from models import BlockedEmail, ModerationLog, db


PROFANITY_WORDS = [
    "fuck", "shit", "damn", "bitch", "asshole", "bastard", "crap",
    "hell", "piss", "dick", "cock", "pussy", "tits", "ass", "whore",
    "slut", "fag", "nigger", "retard", "idiot", "stupid", "hate",
    "kill yourself", "kys", "die", "suicide", "bomb", "terrorist",
    "nazi", "hitler", "rape", "murder", "violence",
]

SPAM_PATTERNS = [
    re.compile(r"buy\s+now", re.IGNORECASE),
    re.compile(r"click\s+here", re.IGNORECASE),
    re.compile(r"free\s+money", re.IGNORECASE),
    re.compile(r"make\s+\$\d+", re.IGNORECASE),
    re.compile(r"work\s+from\s+home", re.IGNORECASE),
    re.compile(r"lose\s+weight", re.IGNORECASE),
    re.compile(r"viagra|cialis", re.IGNORECASE),
    re.compile(r"crypto|bitcoin|investment", re.IGNORECASE),
    re.compile(r"https?://\S+", re.IGNORECASE),
    re.compile(r"www\.\S+", re.IGNORECASE),
    re.compile(r"\b\d{3}-\d{3}-\d{4}\b"),
    re.compile(r"\b\d{10,}\b"),
    re.compile(r"@\S+\.(com|org|net|edu)", re.IGNORECASE),
]

DISPOSABLE_EMAIL_DOMAINS = {
    "10minutemail.com", "guerrillamail.com", "mailinator.com", "tempmail.org",
    "yopmail.com", "temp-mail.org", "throwaway.email", "getnada.com",
    "maildrop.cc", "sharklasers.com", "guerrillamailblock.com", "pokemail.net",
    "spam4.me", "bccto.me", "chacuo.net", "dispostable.com", "emailondeck.com",
    "fakeinbox.com", "hide.biz.st", "mytrashmail.com", "nobulk.com",
    "sogetthis.com", "spamherelots.com", "superrito.com", "zoemail.org",
}

SUSPICIOUS_NAME_PATTERNS = [
    re.compile(r"^test\s*\d*$", re.IGNORECASE),
    re.compile(r"^fake", re.IGNORECASE),
    re.compile(r"^spam", re.IGNORECASE),
    re.compile(r"^troll", re.IGNORECASE),
    re.compile(r"^admin", re.IGNORECASE),
    re.compile(r"^(null|undefined|delete|drop|select|insert|update)$", re.IGNORECASE),
    re.compile(r"^(script|alert|javascript|<script)", re.IGNORECASE),
    re.compile(r"fuck|shit|damn|bitch|asshole", re.IGNORECASE),
    re.compile(r"^\s*$"),
    re.compile(r"^.$"),
    re.compile(r"^(.)\1{4,}$"),
    re.compile(r"^(.)(.)\1\2", re.IGNORECASE),
]

SQL_INJECTION_PATTERNS = [
    re.compile(r"drop\s+table", re.IGNORECASE),
    re.compile(r"delete\s+from", re.IGNORECASE),
    re.compile(r"insert\s+into", re.IGNORECASE),
    re.compile(r"update\s+set", re.IGNORECASE),
    re.compile(r"select\s+\*", re.IGNORECASE),
    re.compile(r"union\s+select", re.IGNORECASE),
    re.compile(r"or\s+1\s*=\s*1", re.IGNORECASE),
    re.compile(r"'\s*or\s*'", re.IGNORECASE),
    re.compile(r"--"),
    re.compile(r"/\*"),
    re.compile(r"\*/"),
]

QUESTION_PROFANITY_PATTERNS = [
    re.compile(
        r"fuck|shit|damn|bitch|asshole|bastard|crap|hell|piss|dick|cock|pussy|tits|ass|whore|slut|fag|nigger|retard",
        re.IGNORECASE,
    ),
    re.compile(r"kill\s+yourself", re.IGNORECASE),
    re.compile(r"kys", re.IGNORECASE),
    re.compile(r"die", re.IGNORECASE),
    re.compile(r"hate\s+you", re.IGNORECASE),
]

QUESTION_SPAM_PATTERNS = [
    re.compile(r"buy\s+now", re.IGNORECASE),
    re.compile(r"click\s+here", re.IGNORECASE),
    re.compile(r"free\s+money", re.IGNORECASE),
    re.compile(r"make\s+money", re.IGNORECASE),
    re.compile(r"work\s+from\s+home", re.IGNORECASE),
    re.compile(r"https?://", re.IGNORECASE),
    re.compile(r"www\.", re.IGNORECASE),
    re.compile(r"\.com|\.org|\.net", re.IGNORECASE),
]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
BLOCKED_MESSAGE = "[BLOCKED - Inappropriate content]"
SEVERITY_ORDER = {"low": 0, "medium": 1, "high": 2}


@dataclass
class ModerationResult:
    filtered: str
    was_moderated: bool = False
    severity: str = "low"
    flags: list[str] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return "blocked" in self.flags

    def raise_severity(self, level: str):
        if SEVERITY_ORDER[level] > SEVERITY_ORDER[self.severity]:
            self.severity = level


@dataclass
class ValidationResult:
    is_valid: bool
    reason: str | None = None
    severity: str | None = None
    # True when the input is well-formed but disallowed content.
    blocked: bool = False


def moderate_text(text: str) -> ModerationResult:
    """Masks profanity and flags spam; blocks text that is mostly profanity."""
    text = text or ""
    result = ModerationResult(filtered=text)

    for word in PROFANITY_WORDS:
        pattern = re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)
        if pattern.search(result.filtered):
            result.filtered = pattern.sub("*" * len(word), result.filtered)
            result.was_moderated = True
            result.raise_severity("high")
            result.flags.append("profanity")

    for pattern in SPAM_PATTERNS:
        if pattern.search(text):
            result.flags.append("spam")
            result.raise_severity("medium")

    if len(text) > 10:
        caps_ratio = sum(1 for char in text if "A" <= char <= "Z") / len(text)
        if caps_ratio > 0.7:
            result.flags.append("excessive_caps")
            result.raise_severity("medium")

    if re.search(r"(.)\1{4,}", text):
        result.flags.append("repeated_chars")
        result.raise_severity("medium")

    if text:
        masked = len(text) - len(result.filtered.replace("*", ""))
        if masked / len(text) > 0.5:
            return ModerationResult(
                filtered=BLOCKED_MESSAGE,
                was_moderated=True,
                severity="high",
                flags=result.flags + ["blocked"],
            )

    return result


def validate_email(email: str) -> ValidationResult:
    if not EMAIL_PATTERN.match(email or ""):
        return ValidationResult(False, "Invalid email format", "high")

    domain = email.split("@", 1)[1].lower()
    if domain in DISPOSABLE_EMAIL_DOMAINS:
        return ValidationResult(False, "Disposable email addresses are not allowed", "high", blocked=True)
    if "+" in email:
        return ValidationResult(False, "Email aliases are not allowed for this event", "medium", blocked=True)
    # Matched case-sensitively against the address as typed.
    if "test" in email or "fake" in email or "spam" in email:
        return ValidationResult(False, "Email appears to be fake or for testing", "high", blocked=True)
    return ValidationResult(True)


def validate_name(name: str) -> ValidationResult:
    name = name or ""
    if len(name) < 2:
        return ValidationResult(False, "Name must be at least 2 characters", "medium")
    if len(name) > 50:
        return ValidationResult(False, "Name is too long", "medium")
    if any(pattern.search(name) for pattern in SUSPICIOUS_NAME_PATTERNS):
        return ValidationResult(False, "Name contains inappropriate or suspicious content", "high", blocked=True)
    if any(pattern.search(name) for pattern in SQL_INJECTION_PATTERNS):
        return ValidationResult(False, "Name contains potentially malicious content", "high", blocked=True)
    return ValidationResult(True)


def validate_job_title(job_title: str) -> ValidationResult:
    job_title = job_title or ""
    if len(job_title) < 2:
        return ValidationResult(False, "Job title must be at least 2 characters", "medium")
    if len(job_title) > 100:
        return ValidationResult(False, "Job title is too long", "medium")
    if any(pattern.search(job_title) for pattern in SUSPICIOUS_NAME_PATTERNS):
        return ValidationResult(False, "Job title contains inappropriate content", "high", blocked=True)
    return ValidationResult(True)


def validate_question(question: str) -> ValidationResult:
    question = question or ""
    if len(question) < 5:
        return ValidationResult(False, "Question must be at least 5 characters", "medium")
    if len(question) > 500:
        return ValidationResult(False, "Question is too long", "medium")
    if any(pattern.search(question) for pattern in QUESTION_PROFANITY_PATTERNS):
        return ValidationResult(False, "Question contains inappropriate language", "high", blocked=True)
    if any(pattern.search(question) for pattern in QUESTION_SPAM_PATTERNS):
        return ValidationResult(False, "Question appears to be spam or contains links", "high", blocked=True)
    return ValidationResult(True)


def is_blocked_email(email: str) -> bool:
    domain = email.split("@", 1)[1].lower() if "@" in email else ""
    try:
        match = (
            BlockedEmail.query.filter(or_(BlockedEmail.email == email, BlockedEmail.domain == domain))
            .limit(1)
            .first()
        )
    except SQLAlchemyError as exc:
        # Lookup failure must not lock legitimate users out.
        current_app.logger.exception("Blocked email lookup failed: %s", exc)
        return False
    return match is not None


def log_moderation_action(action_type: str, target_type: str, reason: str, target_id: str | None = None,
                          metadata: dict | None = None):
    """Appends to the moderation log in its own commit; failures are logged, not raised."""
    entry = ModerationLog(
        action_type=action_type,
        target_id=target_id,
        target_type=target_type,
        reason=reason,
        moderator="system",
        details=metadata,
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to log moderation action: %s", exc)
        return
    current_app.logger.info("Moderation %s on %s: %s", action_type, target_type, reason)
