import re

_NON_WORD = re.compile(r"[^\w\s]|_")

ONET_CODE_RE = re.compile(r"^\d{2}-\d{4}\.\d{2}$")
SOC_CODE_RE = re.compile(r"^\d{2}-\d{4}$")
# major (xx-0000) and minor (xx-x000) summary rows in BLS tables
SUMMARY_CODE_RE = re.compile(r"^\d{2}-\d000$")


def normalize_title(title: str) -> str:
    """Lowercase, drop punctuation and symbols, collapse whitespace."""
    if not isinstance(title, str):
        return ""
    return " ".join(_NON_WORD.sub("", title.lower()).split())


def is_onet_code(code: str) -> bool:
    return bool(ONET_CODE_RE.match(code or ""))


def is_summary_code(code: str) -> bool:
    return code.endswith("0000") or bool(SUMMARY_CODE_RE.match(code))


def strip_onet_suffix(code: str) -> str:
    """'11-2021.00' -> '11-2021'. Codes without a suffix pass through."""
    return code.split(".", 1)[0]


def to_onet_code(code: str) -> str:
    """'11-2021' -> '11-2021.00'. Codes that already carry a suffix pass through."""
    return code if "." in code else f"{code}.00"


def major_group(code: str) -> str:
    return code[:2]
