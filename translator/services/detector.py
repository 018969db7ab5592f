"""Heuristic language detection from stop-words and character scripts."""

import re
from typing import Dict, List, Optional, Pattern, Tuple

from translator.schemas.detection import DetectionResult

DEFAULT_LANGUAGE = "en"
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.95
LOW_CONFIDENCE_THRESHOLD = 0.2


def _words(*words: str) -> Pattern:
    return re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")\b")


# Order matters: on equal match counts the earlier language wins.
STOP_WORD_PATTERNS: List[Tuple[str, Pattern]] = [
    ("pt", _words(
        "e", "de", "da", "do", "dos", "das", "para", "com", "uma", "um", "você", "vocês", "não",
        "que", "mais", "muito", "também", "já", "seu", "sua", "seus", "suas", "ele", "ela",
        "eles", "elas", "este", "esta", "isto", "esse", "essa", "isso", "aquele", "aquela",
        "aquilo", "quando", "onde", "como", "por", "porque", "então", "mas", "porém", "contudo",
        "todavia", "entretanto", "ainda", "sempre", "nunca", "talvez", "bem", "mal", "melhor",
        "pior", "bom", "boa", "ruim", "grande", "pequeno", "novo", "velho", "jovem", "antigo",
        "primeiro", "último", "hoje", "amanhã", "ontem", "agora", "depois", "antes", "durante",
        "às", "vezes", "muitas", "poucas", "todas", "todos", "nenhum", "nenhuma", "algum",
        "alguma", "qualquer", "cada", "toda", "todo", "outro", "outra", "outros", "outras",
        "mesmo", "mesma", "próprio", "própria",
    )),
    ("es", _words(
        "y", "de", "la", "el", "los", "las", "para", "con", "una", "un", "usted", "ustedes", "no",
        "que", "más", "muy", "también", "ya", "su", "sus", "él", "ella", "ellos", "ellas", "este",
        "esta", "esto", "ese", "esa", "eso", "aquel", "aquella", "aquello", "cuando", "donde",
        "como", "por", "porque", "entonces", "pero", "sin", "embargo", "aún", "siempre", "nunca",
        "quizás", "bien", "mal", "mejor", "peor", "bueno", "buena", "malo", "mala", "grande",
        "pequeño", "nuevo", "viejo", "joven", "antiguo", "primero", "último", "hoy", "mañana",
        "ayer", "ahora", "después", "antes", "durante", "a", "veces", "muchas", "pocas", "todas",
        "todos", "ningún", "ninguna", "algún", "alguna", "cualquier", "cada", "toda", "todo",
        "otro", "otra", "otros", "otras", "mismo", "misma", "propio", "propia",
    )),
    ("fr", _words(
        "et", "de", "la", "le", "les", "pour", "avec", "une", "un", "vous", "ne", "pas", "que",
        "plus", "très", "aussi", "déjà", "votre", "vos", "il", "elle", "ils", "elles", "ce",
        "cette", "cet", "ces", "celui", "celle", "ceux", "celles", "quand", "où", "comment",
        "par", "parce", "alors", "mais", "sans", "cependant", "encore", "toujours", "jamais",
        "peut-être", "bien", "mal", "mieux", "pire", "bon", "bonne", "mauvais", "mauvaise",
        "grand", "grande", "petit", "petite", "nouveau", "nouvelle", "vieux", "vieille", "jeune",
        "ancien", "ancienne", "premier", "première", "dernier", "dernière", "aujourd", "demain",
        "hier", "maintenant", "après", "avant", "pendant", "quelquefois", "beaucoup", "peu",
        "toutes", "tous", "aucun", "aucune", "quelque", "chaque", "toute", "tout", "autre",
        "même", "propre",
    )),
    ("de", _words(
        "und", "der", "die", "das", "den", "dem", "des", "für", "mit", "eine", "ein", "sie",
        "nicht", "dass", "mehr", "sehr", "auch", "schon", "ihr", "ihre", "er", "es", "wir",
        "dieser", "diese", "dieses", "jener", "jene", "jenes", "wann", "wo", "wie", "durch",
        "weil", "dann", "aber", "ohne", "jedoch", "noch", "immer", "nie", "vielleicht", "gut",
        "schlecht", "besser", "schlechter", "groß", "große", "klein", "kleine", "neu", "neue",
        "alt", "alte", "jung", "erste", "ersten", "letzten", "heute", "morgen", "gestern",
        "jetzt", "nach", "vor", "während", "manchmal", "viele", "wenige", "alle", "kein", "keine",
        "einige", "jeder", "jede", "jedes", "ganz", "andere", "anderen", "selbst", "eigen",
        "eigene",
    )),
    ("it", _words(
        "e", "di", "la", "il", "lo", "gli", "le", "per", "con", "una", "un", "lei", "non", "che",
        "più", "molto", "anche", "già", "suo", "sua", "suoi", "sue", "lui", "essa", "essi",
        "esse", "questo", "questa", "quello", "quella", "quando", "dove", "come", "da", "perché",
        "allora", "ma", "senza", "tuttavia", "ancora", "sempre", "mai", "forse", "bene", "male",
        "meglio", "peggio", "buono", "buona", "cattivo", "cattiva", "grande", "piccolo",
        "piccola", "nuovo", "nuova", "vecchio", "vecchia", "giovane", "primo", "prima", "ultimo",
        "ultima", "oggi", "domani", "ieri", "ora", "dopo", "durante", "qualche", "volta", "molte",
        "poche", "tutte", "tutti", "nessun", "nessuna", "alcuni", "alcune", "ogni", "tutta",
        "tutto", "altro", "altra", "altri", "altre", "stesso", "stessa", "proprio", "propria",
    )),
    ("en", _words(
        "and", "the", "of", "to", "for", "with", "a", "an", "you", "not", "that", "more", "very",
        "also", "already", "your", "he", "she", "it", "we", "they", "this", "these", "those",
        "when", "where", "how", "by", "because", "then", "but", "without", "however", "still",
        "always", "never", "maybe", "good", "bad", "better", "worse", "big", "small", "new",
        "old", "young", "first", "last", "today", "tomorrow", "yesterday", "now", "after",
        "before", "during", "sometimes", "many", "few", "all", "none", "some", "any", "each",
        "every", "whole", "other", "same", "own",
    )),
]

# Checked in order when the stop-word ratio is too low; first match wins.
SCRIPT_PATTERNS: List[Tuple[str, Pattern, float]] = [
    ("pt", re.compile(r"[ãõç]", re.IGNORECASE), 0.7),
    ("es", re.compile(r"[ñ]", re.IGNORECASE), 0.7),
    ("fr", re.compile(r"[àéèêç]", re.IGNORECASE), 0.6),
    ("de", re.compile(r"[äöüß]", re.IGNORECASE), 0.7),
    ("ru", re.compile(r"[а-яё]", re.IGNORECASE), 0.8),
    ("zh", re.compile("[\u4e00-\u9fff]"), 0.8),
    ("ja", re.compile("[\u3040-\u309f\u30a0-\u30ff]"), 0.8),
    ("ko", re.compile("[\uac00-\ud7a3]"), 0.8),
    ("ar", re.compile("[\u0600-\u06ff]"), 0.8),
]

WORD_RE = re.compile(r"\w+")

DEFAULT_RESULT = DetectionResult(language=DEFAULT_LANGUAGE, confidence=MIN_CONFIDENCE)


def _score_patterns(lowered: str) -> Dict[str, int]:
    """Count stop-word matches per language."""
    return {lang: len(pattern.findall(lowered)) for lang, pattern in STOP_WORD_PATTERNS}


def _detect_script(text: str) -> Optional[DetectionResult]:
    for lang, pattern, confidence in SCRIPT_PATTERNS:
        if pattern.search(text):
            return DetectionResult(language=lang, confidence=confidence)
    return None


def detect_language(text: str) -> DetectionResult:
    """
    Guess the language of a text.

    Stop-word matches are counted per language and the best language wins
    with confidence matches / words, capped at 0.95 and floored at 0.1.
    Below 0.2 the character script decides instead, when it can.

    Args:
        text: Text to inspect

    Returns:
        DetectionResult from the heuristic
    """
    if not text or not text.strip():
        return DEFAULT_RESULT

    scores = _score_patterns(text.lower())
    total_words = len(WORD_RE.findall(text))

    best_language = DEFAULT_LANGUAGE
    best_matches = 0
    for lang, _ in STOP_WORD_PATTERNS:
        if scores[lang] > best_matches:
            best_language = lang
            best_matches = scores[lang]

    ratio = min(best_matches / total_words, MAX_CONFIDENCE) if total_words else 0.0

    if ratio < LOW_CONFIDENCE_THRESHOLD:
        by_script = _detect_script(text)
        if by_script:
            return by_script

    return DetectionResult(language=best_language, confidence=max(ratio, MIN_CONFIDENCE))
