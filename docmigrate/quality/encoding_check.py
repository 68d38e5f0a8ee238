# ==============================================
# Encoding analysis
# ==============================================
#
# Scans string values for characters that commonly break a
# migration into a non-Unicode or strict target:
#
#   NonASCII           → any code point above U+007F          (Info)
#   Emoji              → pictograph / symbol blocks           (Info)
#   ControlCharacters  → category Cc except \t \n \r          (Warning)
#   InvalidUnicode     → lone surrogates U+D800..U+DFFF       (Warning)
#
# A value can count toward several issue types. Only issue types that
# were actually found produce a result.
#
# ==============================================

import unicodedata
from typing import Dict, List

from docmigrate.sample import MISSING

from .base import CheckContext, preview, run_per_field
from .models import CheckOutput, EncodingIssueResult, EncodingIssueType, EncodingSample, Severity

CHECK_NAME = "encoding"

EMOJI_RANGES = (
    (0x1F300, 0x1F5FF),  # symbols & pictographs
    (0x1F600, 0x1F64F),  # emoticons
    (0x1F680, 0x1F6FF),  # transport & map
    (0x1F900, 0x1F9FF),  # supplemental symbols
    (0x2600, 0x26FF),  # misc symbols
    (0x2700, 0x27BF),  # dingbats
)

ALLOWED_CONTROL = {"\t", "\n", "\r"}

MAX_HEX_CODES = 20

SEVERITY_BY_TYPE = {
    EncodingIssueType.NON_ASCII: Severity.INFO,
    EncodingIssueType.EMOJI: Severity.INFO,
    EncodingIssueType.CONTROL_CHARACTERS: Severity.WARNING,
    EncodingIssueType.INVALID_UNICODE: Severity.WARNING,
}


def _is_emoji(code: int) -> bool:
    return any(low <= code <= high for low, high in EMOJI_RANGES)


def classify_characters(text: str) -> Dict[EncodingIssueType, List[str]]:
    """
    Offending characters of a string, grouped by issue type.

    Example:
        "café 😀" → {NonASCII: ["é", "😀"], Emoji: ["😀"]}
    """
    found: Dict[EncodingIssueType, List[str]] = {}
    for char in text:
        code = ord(char)
        if 0xD800 <= code <= 0xDFFF:
            found.setdefault(EncodingIssueType.INVALID_UNICODE, []).append(char)
            continue
        if code > 0x7F:
            found.setdefault(EncodingIssueType.NON_ASCII, []).append(char)
            if _is_emoji(code):
                found.setdefault(EncodingIssueType.EMOJI, []).append(char)
        elif char not in ALLOWED_CONTROL and unicodedata.category(char) == "Cc":
            found.setdefault(EncodingIssueType.CONTROL_CHARACTERS, []).append(char)
    return found


def hex_codes(chars: List[str]) -> str:
    return " ".join(f"U+{ord(c):04X}" for c in chars[:MAX_HEX_CODES])


def _safe_preview(text: str) -> str:
    # Lone surrogates cannot be encoded to UTF-8 downstream
    cleaned = text.encode("utf-8", "backslashreplace").decode("utf-8")
    return preview(cleaned)


def check_encoding(context: CheckContext) -> CheckOutput:
    options = context.options
    sample = context.sample

    def analyze(path: str) -> List[EncodingIssueResult]:
        string_count = 0
        counts: Dict[EncodingIssueType, int] = {}
        samples: Dict[EncodingIssueType, List[EncodingSample]] = {}

        for doc_id, value in sample.values(path):
            if value is MISSING or not isinstance(value, str):
                continue
            string_count += 1
            for issue_type, chars in classify_characters(value).items():
                counts[issue_type] = counts.get(issue_type, 0) + 1
                bucket = samples.setdefault(issue_type, [])
                if len(bucket) < options.max_sample_records:
                    bucket.append(EncodingSample(document_id=doc_id, hex_codes=hex_codes(chars), preview=_safe_preview(value)))

        results = []
        for issue_type in EncodingIssueType:
            if issue_type not in counts:
                continue
            results.append(
                EncodingIssueResult(
                    field=path,
                    issue_type=issue_type,
                    affected_count=counts[issue_type],
                    string_value_count=string_count,
                    severity=SEVERITY_BY_TYPE[issue_type],
                    samples=samples[issue_type],
                )
            )
        return results

    return run_per_field(context, CHECK_NAME, context.profile.field_paths(), analyze)
