# ABOUTME: Language tag normalization toward BCP 47 two-letter-preferred codes.
# ABOUTME: Maps ISO 639-2 three-letter codes to ISO 639-1 and flags unknown tags without failing.

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# ISO 639-2 (both /T and /B variants) to ISO 639-1.
LANGUAGE_CODE_MAP: dict[str, str] = {
    "eng": "en", "fra": "fr", "fre": "fr", "deu": "de", "ger": "de",
    "spa": "es", "ita": "it", "por": "pt", "rus": "ru", "jpn": "ja",
    "zho": "zh", "chi": "zh", "kor": "ko", "ara": "ar", "hin": "hi",
    "ben": "bn", "pan": "pa", "jav": "jv", "vie": "vi", "tur": "tr",
    "pol": "pl", "ukr": "uk", "ron": "ro", "rum": "ro", "nld": "nl",
    "dut": "nl", "ell": "el", "gre": "el", "ces": "cs", "cze": "cs",
    "hun": "hu", "swe": "sv", "bul": "bg", "dan": "da", "fin": "fi",
    "nor": "no", "nob": "nb", "nno": "nn", "slk": "sk", "slo": "sk",
    "hrv": "hr", "srp": "sr", "slv": "sl", "est": "et", "lav": "lv",
    "lit": "lt", "cat": "ca", "eus": "eu", "baq": "eu", "glg": "gl",
    "cym": "cy", "wel": "cy", "gle": "ga", "isl": "is", "ice": "is",
    "mlt": "mt", "afr": "af", "sqi": "sq", "alb": "sq", "bel": "be",
    "bos": "bs", "mkd": "mk", "mac": "mk", "heb": "he", "yid": "yi",
    "ind": "id", "msa": "ms", "may": "ms", "tha": "th", "fil": "tl",
    "tgl": "tl", "fas": "fa", "per": "fa", "urd": "ur", "guj": "gu",
    "mar": "mr", "tam": "ta", "tel": "te", "kan": "kn", "mal": "ml",
    "mya": "my", "bur": "my", "khm": "km", "lao": "lo", "kat": "ka",
    "geo": "ka", "hye": "hy", "arm": "hy", "aze": "az", "kaz": "kk",
    "uzb": "uz", "mon": "mn", "nep": "ne", "sin": "si", "amh": "am",
    "swa": "sw", "hau": "ha", "yor": "yo", "ibo": "ig", "zul": "zu",
    "xho": "xh", "lat": "la", "san": "sa", "epo": "eo",
}

# ISO 639-1 codes accepted as valid primary language subtags.
VALID_LANGUAGE_CODES = frozenset(
    """
    aa ab ae af ak am an ar as av ay az ba be bg bh bi bm bn bo br bs ca ce
    ch co cr cs cu cv cy da de dv dz ee el en eo es et eu fa ff fi fj fo fr
    fy ga gd gl gn gu gv ha he hi ho hr ht hu hy hz ia id ie ig ii ik io is
    it iu ja jv ka kg ki kj kk kl km kn ko kr ks ku kv kw ky la lb lg li ln
    lo lt lu lv mg mh mi mk ml mn mr ms mt my na nb nd ne ng nl nn no nr nv
    ny oc oj om or os pa pi pl ps pt qu rm rn ro ru rw sa sc sd se sg si sk
    sl sm sn so sq sr ss st su sv sw ta te tg th ti tk tl tn to tr ts tt tw
    ty ug uk ur uz ve vi vo wa wo xh yi yo za zh zu
    """.split()
)

_SUBTAG_SEPARATOR_RE = re.compile(r"[-_]")


@dataclass
class LanguageResult:
    """Outcome of normalizing a language tag.

    Attributes:
        code: The normalized tag (may be empty).
        warning: Human-readable note when the tag could not be validated.
        converted: True when a three-letter code was mapped to two letters.
        original: The input as given, echoed back when `converted` is set.
    """

    code: str
    warning: str | None = None
    converted: bool = False
    original: str | None = None


def normalize_language_code(code: str | None) -> LanguageResult:
    """Normalize a free-form language tag.

    Lower-cases the primary subtag (mapping known three-letter codes to
    their two-letter equivalent) and upper-cases the remaining subtags,
    joined with "-". Never raises: unknown codes come back best-effort with
    a warning.

    Args:
        code: A tag such as "eng", "EN-us" or "pt_br".

    Returns:
        LanguageResult with the normalized code and any advisory note.
    """
    if not code or not code.strip():
        return LanguageResult(code="")

    original = code.strip()
    parts = [p for p in _SUBTAG_SEPARATOR_RE.split(original.lower()) if p]
    if not parts:
        return LanguageResult(code="")

    raw_base = parts[0]
    base = LANGUAGE_CODE_MAP.get(raw_base, raw_base) if len(raw_base) == 3 else raw_base
    normalized = "-".join([base, *(p.upper() for p in parts[1:])])

    if len(base) == 2 and base not in VALID_LANGUAGE_CODES:
        logger.debug("Unknown language code %r", original)
        return LanguageResult(
            code=normalized,
            warning=(
                f'Unknown language code: "{original}". '
                "Please verify this is a valid BCP 47 code."
            ),
        )

    if len(raw_base) == 3 and raw_base not in LANGUAGE_CODE_MAP:
        logger.debug("No two-letter equivalent for %r", raw_base)
        return LanguageResult(
            code=normalized,
            warning=(
                f'Could not convert 3-letter code "{raw_base}" to BCP 47 format. '
                "Please verify manually."
            ),
        )

    if base != raw_base:
        return LanguageResult(code=normalized, converted=True, original=original)

    return LanguageResult(code=normalized)
