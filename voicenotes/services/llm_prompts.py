"""LLM prompt templates for voice note analysis."""

from voicenotes.models.enums import PRIORITY_LEVELS, Category, Sentiment

_CATEGORY_DESCRIPTIONS = {
    Category.CLIENT: "Gestione clienti, reclami, feedback, richieste",
    Category.TECHNICAL: "Riparazioni, manutenzione, problemi strumenti",
    Category.ADMINISTRATIVE: "Fatture, documenti, burocrazia, pratiche",
    Category.INVENTORY: "Ordini materiali, scorte, fornitori",
    Category.APPOINTMENTS: "Visite, controlli vista, appuntamenti",
    Category.URGENT: "Emergenze che richiedono azione immediata",
    Category.FOLLOW_UP: "Note che richiedono follow-up futuro",
    Category.OTHER: "Non classificabile nelle categorie precedenti",
}

_SENTIMENT_DESCRIPTIONS = {
    Sentiment.NEUTRAL: "Tono normale, informativo",
    Sentiment.CONCERNED: "Operatore mostra preoccupazione",
    Sentiment.FRUSTRATED: "Irritazione o frustrazione evidente",
    Sentiment.ANGRY: "Rabbia, forte disappunto",
    Sentiment.URGENT: "Richiede azione immediata, tono allarmato",
    Sentiment.POSITIVE: "Soddisfatto, entusiasta, contento",
}

_PRIORITY_DESCRIPTIONS = {
    1: "informazioni generali",
    2: "routine normale",
    3: "da gestire entro qualche giorno",
    4: "da gestire oggi/domani",
    5: "urgente, azione immediata",
}


def _bullets(descriptions: dict) -> str:
    return "\n".join(f"- {key.value}: {text}" for key, text in descriptions.items())


def _priority_bullets() -> str:
    return "\n".join(
        f"- {level}: {PRIORITY_LEVELS[level]} ({text})"
        for level, text in _PRIORITY_DESCRIPTIONS.items()
    )


ANALYSIS_SYSTEM_PROMPT = f"""Sei un assistente AI specializzato nell'analisi di note vocali per un negozio di ottica.

Il tuo compito è analizzare trascrizioni di messaggi vocali degli addetti del negozio e fornire:

1. CATEGORIZZAZIONE (una categoria):
{_bullets(_CATEGORY_DESCRIPTIONS)}

2. SENTIMENT ANALYSIS (un sentiment):
{_bullets(_SENTIMENT_DESCRIPTIONS)}

3. PRIORITÀ (numero 1-5):
{_priority_bullets()}

4. ESTRAZIONE DATE: trova e formatta date/orari menzionati

5. NECESSITA REVISIONE: true se l'analisi è incerta

Rispondi SEMPRE in formato JSON valido, senza markdown o formattazione extra."""

ANALYSIS_RESPONSE_SCHEMA = """{
  "category_auto": "CATEGORIA",
  "sentiment": "SENTIMENT",
  "priority_level": numero_1_5,
  "extracted_dates": [
    {
      "text": "testo_originale",
      "parsed_date": "YYYY-MM-DDTHH:MM:SS",
      "type": "appointment|deadline|delivery|reminder",
      "confidence": numero_0_1
    }
  ],
  "needs_review": boolean,
  "reasoning": "spiegazione_breve_della_scelta"
}"""


def get_analysis_prompt(
    transcript: str, duration: float | None = None, confidence: float | None = None
) -> str:
    """Generate the user prompt for analyzing one transcript."""
    lines = [
        "Analizza questa trascrizione di nota vocale da un negozio di ottica:",
        "",
        f'TRASCRIZIONE: "{transcript}"',
        "",
    ]
    if duration:
        lines.append(f"DURATA: {round(duration)} secondi")
    if confidence:
        lines.append(f"CONFIDENZA TRASCRIZIONE: {round(confidence * 100)}%")
    lines.append("")
    lines.append("Fornisci l'analisi in questo formato JSON esatto:")
    lines.append(ANALYSIS_RESPONSE_SCHEMA)
    return "\n".join(lines)
