# prompt_contract.py

EXTRACTOR_SYSTEM = (
    "You are an expert prep extractor. Respond with valid JSON only. "
    "Do not wrap responses in markdown fences."
)

EXTRACTOR_INTRO = (
    "Extract structured prep details from the provided maps and party sheets. "
    "Reply with STRICT JSON only."
)

EXTRACTOR_SCHEMA = r"""
The JSON must follow this structure:
{
  "maps": [
    {
      "name": "Name of the map (prefer the file name)",
      "file": "file name",
      "zones": [
        { "zoneId": "A-1", "title": "Short title", "summary": "1-2 sentence summary" }
      ]
    }
  ],
  "zone_descriptions": [
    { "zoneId": "A-1", "details": "Longer description including terrain, clues, secrets" }
  ],
  "connections": [
    { "from": "A-1", "to": "A-2", "note": "How they connect; include cross-map leads" }
  ],
  "party_summary": {
    "roles": "Party composition and roles",
    "key_abilities": "Spells, maneuvers, notable items",
    "weak_saves": "Notable weak defenses",
    "senses": "Perception or sensory advantages"
  },
  "transitions": [
    { "fromMap": "Map file name", "toMap": "Other map file", "hook": "Suggested transition scene" }
  ]
}
""".strip()

EXTRACTOR_ZONE_HINT = "Use zoneId prefixes like A-, B- per map."

SYNTHESIZER_INSTRUCTIONS = r"""
Erzeuge ein Markdown-Prep-Dokument auf Deutsch. Nutze NUR die gelieferten extrahierten Daten. Anforderungen:
- Füge pro Karte zwei Links hinzu: "player" (Spieleransicht) und "gm_zones" (Zonenreferenz, auch wenn der Link nur ein Platzhalter ist).
- Verknüpfe Szenen klar mit den jeweiligen zoneId aus den extrahierten Daten.
- Baue einen starken Auftakt (Strong Start).
- Liste genau 10 Geheimnisse & Hinweise mit vorgeschlagenen Drop-Zonen (zoneId).
- Baue Begegnungen, die auf die Party zugeschnitten sind (Nutze party_summary).
- Schlage Belohnungen vor.
- Füge Übergangsszenen zwischen Karten basierend auf transitions hinzu.
""".strip()

CONNECTIVITY_PROMPT = "Reply with a short confirmation that OpenRouter is reachable."
