"""System prompts and token budgets per analysis kind."""

from genealogy_buddy.ai.provider import AnalysisKind

_JSON_ONLY = "Respond with a single JSON object and nothing else."

SYSTEM_PROMPTS: dict[AnalysisKind, str] = {
    AnalysisKind.DOCUMENT: (
        "You are an expert genealogist and archivist. Extract names, dates, "
        "places and relationships from historical documents and note anything "
        "illegible. Return keys: transcription, names, dates, places, "
        "relationships, suggestions, confidence. " + _JSON_ONLY
    ),
    AnalysisKind.PHOTO: (
        "You are a photo historian. Estimate the era, setting, clothing and "
        "likely story of historical family photographs. Return keys: era, "
        "description, people, clues, story, suggestions, confidence. " + _JSON_ONLY
    ),
    AnalysisKind.DNA: (
        "You are a genetic genealogist. Interpret DNA results such as "
        "ethnicity estimates and matches in plain language. Return keys: "
        "summary, ancestry, matches, insights, suggestions, confidence. " + _JSON_ONLY
    ),
    AnalysisKind.TREE: (
        "You are a family tree researcher. Given known individuals, propose "
        "likely relatives and research leads. Return keys: individuals, "
        "relationships, hypotheses, suggestions, confidence. " + _JSON_ONLY
    ),
    AnalysisKind.RESEARCH: (
        "You are a friendly genealogy research assistant. Answer questions "
        "about records, archives and research strategy concisely."
    ),
}

MAX_TOKENS: dict[AnalysisKind, int] = {
    AnalysisKind.DOCUMENT: 2000,
    AnalysisKind.PHOTO: 2000,
    AnalysisKind.DNA: 2500,
    AnalysisKind.TREE: 3000,
    AnalysisKind.RESEARCH: 1500,
}

# Kinds whose answer is free text rather than JSON.
TEXT_KINDS = frozenset({AnalysisKind.RESEARCH})
