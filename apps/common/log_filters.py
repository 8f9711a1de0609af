import logging
import re

PHONE_PATTERN = re.compile(r"(?<!\d)\+?\d{10,13}(?!\d)")
EMAIL_PATTERN = re.compile(r"([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})")
PAN_PATTERN = re.compile(r"\b[A-Z]{5}\d{4}[A-Z]\b")


def mask_sensitive_text(text):
    text = EMAIL_PATTERN.sub(r"\1***@\2", text)
    text = PAN_PATTERN.sub("*****####*", text)
    return PHONE_PATTERN.sub(lambda match: "*******" + match.group(0)[-3:], text)


class SensitiveDataFilter(logging.Filter):
    """Masks phone numbers, e-mail addresses and PAN numbers before records are emitted."""

    def filter(self, record):
        message = record.getMessage()
        masked = mask_sensitive_text(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True
