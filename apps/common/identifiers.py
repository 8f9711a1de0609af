DONOR_PREFIX = "HKS-D"
DONATION_PREFIX = "HKS-T"
INSTALLMENT_PREFIX = "HKS-I"
AUDIT_LOG_PREFIX = "HKS-L"

SEQUENCE_WIDTH = 5


def format_identifier(prefix, sequence):
    """Render ``HKS-D-00042`` style identifiers; widths grow past 99999 instead of wrapping."""
    if sequence < 1:
        raise ValueError("sequence must be a positive integer")
    return f"{prefix}-{sequence:0{SEQUENCE_WIDTH}d}"
