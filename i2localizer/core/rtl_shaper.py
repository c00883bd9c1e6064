# -*- coding: utf-8 -*-
"""
RTL Shaper
==========

Converts logical Persian/Arabic text into the visually ordered presentation
form expected by renderers that neither join letters nor reorder RTL text.

Steps:
1. Arabic letters are normalized to their Persian equivalents
2. Each joining letter takes its isolated / final / initial / medial form,
   lam followed by alef becomes the lam-alef ligature
3. Text is split into RTL and non-RTL runs
4. RTL runs are reversed in place; run order is kept

This is not a Unicode BiDi implementation: it only reproduces what the
target renderer needs.
"""

import logging
from typing import Dict, List, Tuple

logger = logging.getLogger(__name__)

# Arabic code points -> Persian code points
NORMALIZATION_MAP: Dict[str, str] = {
    '\u064A': '\u06CC',  # yeh -> farsi yeh
    '\u0649': '\u06CC',  # alef maksura -> farsi yeh
    '\u0643': '\u06A9',  # kaf -> keheh
    '\u0629': '\u0647',  # teh marbuta -> heh
    '\u0623': '\u0627',  # alef with hamza above -> alef
    '\u0625': '\u0627',  # alef with hamza below -> alef
    '\u0624': '\u0648',  # waw with hamza -> waw
}

ISOLATED, FINAL, INITIAL, MEDIAL = range(4)

# Letter -> (isolated, final, initial, medial)
# Right-joining letters reuse the isolated form as initial and the final form as medial.
PRESENTATION_FORMS: Dict[str, Tuple[str, str, str, str]] = {
    '\u0622': ('\uFE81', '\uFE82', '\uFE81', '\uFE82'),  # alef madda
    '\u0626': ('\uFE89', '\uFE8A', '\uFE8B', '\uFE8C'),  # yeh hamza
    '\u0627': ('\uFE8D', '\uFE8E', '\uFE8D', '\uFE8E'),  # alef
    '\u0628': ('\uFE8F', '\uFE90', '\uFE91', '\uFE92'),  # beh
    '\u067E': ('\uFB56', '\uFB57', '\uFB58', '\uFB59'),  # peh
    '\u062A': ('\uFE95', '\uFE96', '\uFE97', '\uFE98'),  # teh
    '\u062B': ('\uFE99', '\uFE9A', '\uFE9B', '\uFE9C'),  # theh
    '\u062C': ('\uFE9D', '\uFE9E', '\uFE9F', '\uFEA0'),  # jeem
    '\u0686': ('\uFB7A', '\uFB7B', '\uFB7C', '\uFB7D'),  # tcheh
    '\u062D': ('\uFEA1', '\uFEA2', '\uFEA3', '\uFEA4'),  # hah
    '\u062E': ('\uFEA5', '\uFEA6', '\uFEA7', '\uFEA8'),  # khah
    '\u062F': ('\uFEA9', '\uFEAA', '\uFEA9', '\uFEAA'),  # dal
    '\u0630': ('\uFEAB', '\uFEAC', '\uFEAB', '\uFEAC'),  # thal
    '\u0631': ('\uFEAD', '\uFEAE', '\uFEAD', '\uFEAE'),  # reh
    '\u0632': ('\uFEAF', '\uFEB0', '\uFEAF', '\uFEB0'),  # zain
    '\u0698': ('\uFB8A', '\uFB8B', '\uFB8A', '\uFB8B'),  # jeh
    '\u0633': ('\uFEB1', '\uFEB2', '\uFEB3', '\uFEB4'),  # seen
    '\u0634': ('\uFEB5', '\uFEB6', '\uFEB7', '\uFEB8'),  # sheen
    '\u0635': ('\uFEB9', '\uFEBA', '\uFEBB', '\uFEBC'),  # sad
    '\u0636': ('\uFEBD', '\uFEBE', '\uFEBF', '\uFEC0'),  # dad
    '\u0637': ('\uFEC1', '\uFEC2', '\uFEC3', '\uFEC4'),  # tah
    '\u0638': ('\uFEC5', '\uFEC6', '\uFEC7', '\uFEC8'),  # zah
    '\u0639': ('\uFEC9', '\uFECA', '\uFECB', '\uFECC'),  # ain
    '\u063A': ('\uFECD', '\uFECE', '\uFECF', '\uFED0'),  # ghain
    '\u0641': ('\uFED1', '\uFED2', '\uFED3', '\uFED4'),  # feh
    '\u0642': ('\uFED5', '\uFED6', '\uFED7', '\uFED8'),  # qaf
    '\u06A9': ('\uFB8E', '\uFB8F', '\uFB90', '\uFB91'),  # keheh
    '\u06AF': ('\uFB92', '\uFB93', '\uFB94', '\uFB95'),  # gaf
    '\u0644': ('\uFEDD', '\uFEDE', '\uFEDF', '\uFEE0'),  # lam
    '\u0645': ('\uFEE1', '\uFEE2', '\uFEE3', '\uFEE4'),  # meem
    '\u0646': ('\uFEE5', '\uFEE6', '\uFEE7', '\uFEE8'),  # noon
    '\u0648': ('\uFEED', '\uFEEE', '\uFEED', '\uFEEE'),  # waw
    '\u0647': ('\uFEE9', '\uFEEA', '\uFEEB', '\uFEEC'),  # heh
    '\u06CC': ('\uFBFC', '\uFBFD', '\uFBFE', '\uFBFF'),  # farsi yeh
}

# Letters that never join to the following letter
NON_CONNECTORS = frozenset({
    '\u0622',  # alef madda
    '\u0627',  # alef
    '\u062F',  # dal
    '\u0630',  # thal
    '\u0631',  # reh
    '\u0632',  # zain
    '\u0698',  # jeh
    '\u0648',  # waw
})

LAM = '\u0644'

# Alef variant following lam -> (isolated, final) lam-alef ligature
LAM_ALEF_LIGATURES: Dict[str, Tuple[str, str]] = {
    '\u0622': ('\uFEF5', '\uFEF6'),  # lam alef madda
    '\u0623': ('\uFEF7', '\uFEF8'),  # lam alef hamza above
    '\u0625': ('\uFEF9', '\uFEFA'),  # lam alef hamza below
    '\u0627': ('\uFEFB', '\uFEFC'),  # lam alef
}

# Hebrew, Arabic, Arabic Supplement, Arabic Extended-A, Presentation Forms-A/B
RTL_RANGES: Tuple[Tuple[int, int], ...] = (
    (0x0590, 0x05FF),
    (0x0600, 0x06FF),
    (0x0750, 0x077F),
    (0x08A0, 0x08FF),
    (0xFB50, 0xFDFF),
    (0xFE70, 0xFEFF),
)


def is_rtl_char(char: str) -> bool:
    code = ord(char)
    return any(start <= code <= end for start, end in RTL_RANGES)


def is_rtl_text(text: str) -> bool:
    """True when the text contains at least one RTL character."""
    if not isinstance(text, str) or not text:
        return False
    return any(is_rtl_char(char) for char in text)


def normalize_letters(text: str) -> str:
    return ''.join(NORMALIZATION_MAP.get(char, char) for char in text)


def apply_contextual_forms(text: str) -> str:
    """Replace each joining letter with the form chosen by its two neighbours."""
    chars = list(text)
    shaped: List[str] = []

    i = 0
    while i < len(chars):
        char = chars[i]
        forms = PRESENTATION_FORMS.get(char)
        if forms is None:
            shaped.append(char)
            i += 1
            continue

        prev_char = chars[i - 1] if i > 0 else None
        next_char = chars[i + 1] if i + 1 < len(chars) else None

        prev_connects = prev_char in PRESENTATION_FORMS and prev_char not in NON_CONNECTORS
        next_connects = next_char in PRESENTATION_FORMS

        # Lam and the alef after it become one glyph that joins on the right only
        if char == LAM and next_char in LAM_ALEF_LIGATURES:
            isolated, final = LAM_ALEF_LIGATURES[next_char]
            shaped.append(final if prev_connects else isolated)
            i += 2
            continue

        if prev_connects and next_connects:
            shaped.append(forms[MEDIAL])
        elif prev_connects:
            shaped.append(forms[FINAL])
        elif next_connects:
            shaped.append(forms[INITIAL])
        else:
            shaped.append(forms[ISOLATED])
        i += 1

    return ''.join(shaped)


def split_runs(text: str) -> List[Tuple[str, bool]]:
    """Split text into maximal (run, is_rtl) segments."""
    runs: List[Tuple[str, bool]] = []
    current: List[str] = []
    current_rtl = False

    for char in text:
        rtl = is_rtl_char(char)
        if current and rtl != current_rtl:
            runs.append((''.join(current), current_rtl))
            current = []
        current.append(char)
        current_rtl = rtl

    if current:
        runs.append((''.join(current), current_rtl))

    return runs


def reorder_runs(text: str) -> str:
    """Reverse every RTL run, leaving other runs and the run order unchanged."""
    return ''.join(run[::-1] if rtl else run for run, rtl in split_runs(text))


def shape_text(text: str) -> str:
    """
    Shape and reorder text for the target renderer.

    Never raises: empty or non-string input yields an empty string, and text
    without RTL characters is returned unchanged.
    """
    if not isinstance(text, str) or not text:
        return ""
    if not is_rtl_text(text):
        return text

    try:
        normalized = normalize_letters(text)
        shaped = apply_contextual_forms(normalized)
        return reorder_runs(shaped)
    except Exception as e:
        logger.error(f"RTL shaping failed, keeping original text: {e}")
        return text
