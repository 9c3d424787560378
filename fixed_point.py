import re

# amounts are carried as integers counting ten-thousandths of a unit
PRECISION = 4
SCALE = 10 ** PRECISION

_DIGITS = re.compile(r"[0-9]+")


class AmountError(ValueError):
    pass


def parse_amount(text):
    """Parse decimal text like "1.5" or "12.3456" into a scaled integer.

    Exactly one decimal point is required, the integer part may not be negative and at most
    PRECISION fractional digits are accepted. Anything else raises AmountError.
    """
    parts = text.strip().split(".")
    if len(parts) != 2:
        raise AmountError("malformed amount")

    units_text, fraction_text = parts
    if units_text.startswith("-"):
        raise AmountError("negative amount")

    if not _DIGITS.fullmatch(units_text) or not _DIGITS.fullmatch(fraction_text):
        raise AmountError("malformed amount")

    digits = len(fraction_text)
    if digits > PRECISION:
        raise AmountError("precision exceeded")

    # "1.1" means 1.1000, so short fractions get padded out to full precision
    fraction = int(fraction_text) * 10 ** (PRECISION - digits)
    return int(units_text) * SCALE + fraction


def format_amount(value):
    # sign goes on the units part, otherwise -0.5 would render as 0.5000
    sign = "-" if value < 0 else ""
    units, fraction = divmod(abs(value), SCALE)
    return f"{sign}{units}.{fraction:0{PRECISION}d}"
