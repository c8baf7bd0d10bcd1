import re


def format_phone(phone: str) -> str:
    """
    Format a 10-digit number as (770) 656-1244; anything else is returned as is.
    """
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return phone


def status_label(status: str) -> str:
    # blocked_needs_human -> Blocked Needs Human
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), (status or "").replace("_", " "))
