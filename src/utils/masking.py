"""Helpers that keep personal data and credentials out of log lines."""


def normalize_email(email: str) -> str:
    """Lower-case and trim an email so lookups are case-insensitive."""
    return email.strip().lower()


def mask_email(email: str) -> str:
    """Returns a masked version of the email for safe logging.

    Example: 'us**@e*****.com'
    """
    if "@" not in email:
        return "***"
    local, domain_part = email.split("@", 1)
    masked_local = f"{local[:2]}{'*' * max(len(local) - 2, 0)}"
    masked_domain = f"{domain_part[:1]}{'*' * max(len(domain_part) - 2, 0)}{domain_part[-1:]}"
    return f"{masked_local}@{masked_domain}"


def mask_identifier(value: str, visible: int = 4) -> str:
    """Mask all but the first ``visible`` characters of an identifier or digest."""
    if len(value) <= visible:
        return "*" * len(value)
    return f"{value[:visible]}{'*' * 4}"
